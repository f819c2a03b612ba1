"""
Form submissions: public submit endpoint plus owner listing and CSV export.
"""
import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.models.form import Form
from app.models.submission import FormSubmission
from app.schemas.forms import SubmissionCreate, SubmissionResponse
from app.dependencies.auth import get_current_user_id
from app.api.routes.forms import get_owned_form
from app.utils.export import export_filename, responses_to_csv
from app.utils.form_fields import missing_required_fields

logger = logging.getLogger(__name__)

router = APIRouter()


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        # First hop is the original client
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or "unknown"


@router.post("/responses")
def submit_response(
    submission: SubmissionCreate,
    request: Request,
    db: Session = Depends(get_db)
):
    """Public endpoint: respondents submit answers to an active form."""
    if not submission.form_id or submission.responses is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Form ID and responses are required"
        )

    form = db.query(Form).filter(
        Form.id == submission.form_id,
        Form.is_active.is_(True)
    ).first()
    if not form:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Form not found or inactive"
        )

    missing = missing_required_fields(form.fields or [], submission.responses)
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Please fill in all required fields: {', '.join(missing)}"
        )

    row = FormSubmission(
        form_id=form.id,
        response_data=submission.responses,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent") or "unknown",
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("Saved response %s for form %s", row.id, form.id)

    return {
        "success": True,
        "id": row.id,
        "message": "Response saved successfully",
    }


@router.get("/forms/{form_id}/responses", response_model=List[SubmissionResponse])
def list_responses(
    form_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    form = get_owned_form(form_id, user_id, db)
    return db.query(FormSubmission).filter(
        FormSubmission.form_id == form.id
    ).order_by(FormSubmission.submitted_at.desc()).all()


@router.get("/forms/{form_id}/responses/export")
def export_responses(
    form_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Download all responses for a form as CSV."""
    form = get_owned_form(form_id, user_id, db)
    submissions = db.query(FormSubmission).filter(
        FormSubmission.form_id == form.id
    ).order_by(FormSubmission.submitted_at.desc()).all()

    if not submissions:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No responses to export"
        )

    content = responses_to_csv(form.fields or [], submissions)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(form.title)}"'},
    )
