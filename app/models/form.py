import uuid
from sqlalchemy import Column, String, Boolean, JSON, DateTime, Text
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db.base import Base


class Form(Base):
    __tablename__ = "forms"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, nullable=False, index=True)  # Owner (Supabase auth user id)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    fields = Column(JSON, nullable=False, default=list)  # [{id, type, label, placeholder, required, options}]
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    responses = relationship(
        "FormSubmission",
        back_populates="form",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Form(id={self.id}, title={self.title}, user_id={self.user_id})>"
