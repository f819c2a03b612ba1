"""
Model for a respondent's submission to a form.
"""
import uuid
from sqlalchemy import Column, String, JSON, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db.base import Base


class FormSubmission(Base):
    __tablename__ = "responses"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    form_id = Column(String(36), ForeignKey("forms.id", ondelete="CASCADE"), nullable=False, index=True)
    response_data = Column(JSON, nullable=False)  # {field_id: value}
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    submitted_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    form = relationship("Form", back_populates="responses")

    def __repr__(self):
        return f"<FormSubmission(id={self.id}, form_id={self.form_id}, submitted_at={self.submitted_at})>"
