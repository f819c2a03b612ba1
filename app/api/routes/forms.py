import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.models.form import Form
from app.models.submission import FormSubmission
from app.schemas.forms import FormCreate, FormUpdate, FormResponse, PublicFormResponse
from app.dependencies.auth import get_current_user_id
from app.utils.form_fields import FORM_TITLE_MAX_CHARS, validate_form_fields

logger = logging.getLogger(__name__)

router = APIRouter()


def get_owned_form(form_id: str, user_id: str, db: Session) -> Form:
    """Load a form that belongs to the current user, or 404."""
    form = db.query(Form).filter(
        Form.id == form_id,
        Form.user_id == user_id
    ).first()
    if not form:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Form not found"
        )
    return form


def _to_response(form: Form, response_count: int = 0) -> FormResponse:
    return FormResponse(
        id=form.id,
        user_id=form.user_id,
        title=form.title,
        description=form.description or "",
        fields=form.fields or [],
        is_active=form.is_active,
        created_at=form.created_at,
        updated_at=form.updated_at,
        response_count=response_count,
    )


def _clean_title(raw: str) -> str:
    title = raw.strip()
    if len(title) > FORM_TITLE_MAX_CHARS:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Title is too long (max {FORM_TITLE_MAX_CHARS} characters)"
        )
    return title


def _check_fields(fields: list[dict]) -> None:
    field_errors = validate_form_fields(fields)
    if field_errors:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid form fields.", "errors": field_errors},
        )


@router.get("/forms", response_model=List[FormResponse])
def list_forms(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """List the current user's forms, newest first, with response counts."""
    forms = db.query(Form).filter(Form.user_id == user_id).order_by(Form.created_at.desc()).all()

    counts: dict[str, int] = {}
    form_ids = [f.id for f in forms]
    if form_ids:
        rows = db.query(FormSubmission.form_id, func.count(FormSubmission.id)).filter(
            FormSubmission.form_id.in_(form_ids)
        ).group_by(FormSubmission.form_id).all()
        counts = {form_id: count for form_id, count in rows}

    return [_to_response(f, counts.get(f.id, 0)) for f in forms]


@router.post("/forms", status_code=status.HTTP_201_CREATED)
def create_form(
    form_data: FormCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    title = _clean_title(form_data.title or "")
    if not title or not form_data.fields:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Title and fields are required"
        )

    fields = [f.model_dump() for f in form_data.fields]
    _check_fields(fields)

    form = Form(
        user_id=user_id,
        title=title,
        description=form_data.description or "",
        fields=fields,
        is_active=True,
    )
    db.add(form)
    db.commit()
    db.refresh(form)
    logger.info("Created form %s for user %s (%s fields)", form.id, user_id, len(fields))

    return {
        "success": True,
        "form": _to_response(form),
        "message": "Form created successfully",
    }


@router.get("/forms/{form_id}", response_model=PublicFormResponse)
def get_public_form(form_id: str, db: Session = Depends(get_db)):
    """Public access for form filling: only active forms are returned."""
    form = db.query(Form).filter(
        Form.id == form_id,
        Form.is_active.is_(True)
    ).first()
    if not form:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Form not found or inactive"
        )
    return PublicFormResponse(
        id=form.id,
        title=form.title,
        description=form.description or "",
        fields=form.fields or [],
        is_active=form.is_active,
    )


@router.patch("/forms/{form_id}", response_model=FormResponse)
def update_form(
    form_id: str,
    form_data: FormUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    form = get_owned_form(form_id, user_id, db)

    if form_data.title is not None:
        title = _clean_title(form_data.title)
        if not title:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Title cannot be empty"
            )
        form.title = title
    if form_data.description is not None:
        form.description = form_data.description
    if form_data.fields is not None:
        if not form_data.fields:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A form needs at least one field"
            )
        fields = [f.model_dump() for f in form_data.fields]
        _check_fields(fields)
        form.fields = fields
    if form_data.is_active is not None:
        form.is_active = form_data.is_active

    db.commit()
    db.refresh(form)

    response_count = db.query(FormSubmission).filter(FormSubmission.form_id == form.id).count()
    return _to_response(form, response_count)


@router.delete("/forms/{form_id}")
def delete_form(
    form_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    """Delete a form and all of its responses (only if it belongs to the current user)."""
    form = get_owned_form(form_id, user_id, db)
    db.delete(form)
    db.commit()
    logger.info("Deleted form %s for user %s", form_id, user_id)
    return {"status": "success", "message": "Form deleted successfully"}


@router.post("/forms/{form_id}/duplicate", response_model=FormResponse, status_code=status.HTTP_201_CREATED)
def duplicate_form(
    form_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id)
):
    form = get_owned_form(form_id, user_id, db)
    copy = Form(
        user_id=user_id,
        title=f"{form.title} (Copy)",
        description=form.description or "",
        fields=list(form.fields or []),
        is_active=True,
    )
    db.add(copy)
    db.commit()
    db.refresh(copy)
    return _to_response(copy)
