from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from datetime import datetime
from app.db.base import Base


class Subscription(Base):
    """Per-user usage account: plan tier and current-period transcription usage."""
    __tablename__ = "subscriptions"
    __table_args__ = (
        CheckConstraint("api_calls_used >= 0", name="ck_subscriptions_used_non_negative"),
        CheckConstraint("api_calls_limit > 0", name="ck_subscriptions_limit_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, unique=True, index=True)  # Supabase auth user id (JWT "sub")
    plan_type = Column(String, nullable=False, default="free")
    api_calls_used = Column(Integer, nullable=False, default=0)
    api_calls_limit = Column(Integer, nullable=False, default=50)
    current_period_end = Column(DateTime, nullable=False)  # Usage resets when now passes this
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return (
            f"<Subscription(user_id={self.user_id}, plan={self.plan_type}, "
            f"used={self.api_calls_used}/{self.api_calls_limit})>"
        )
