"""
Model for the append-only log of metered API calls (one row per successful transcription).
Also the data source for the per-minute rate limiter.
"""
from sqlalchemy import Column, Integer, String, JSON, DateTime
from datetime import datetime
from app.db.base import Base


class ApiUsage(Base):
    __tablename__ = "api_usage"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    endpoint = Column(String, nullable=False, default="transcribe")
    cost_cents = Column(Integer, nullable=False, default=0)
    # "metadata" is reserved on declarative classes, so map the column under another attribute name
    usage_metadata = Column("metadata", JSON, nullable=True)  # file size, file type, ...
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<ApiUsage(id={self.id}, user_id={self.user_id}, endpoint={self.endpoint}, created_at={self.created_at})>"
