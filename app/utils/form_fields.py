"""
Form field definitions: supported types and validation of form schemas and submissions.
"""

FIELD_TYPES = ("text", "textarea", "email", "phone", "date", "select")

# Maximum number of fields on a single form.
FORM_MAX_FIELDS = 100

# Maximum characters for a form title.
FORM_TITLE_MAX_CHARS = 200


def validate_form_fields(fields: list[dict]) -> list[str]:
    """
    Validate a form's field definitions.
    Returns a list of human-readable error messages; empty list means valid.
    """
    errors: list[str] = []
    if len(fields) > FORM_MAX_FIELDS:
        errors.append(f"fields: {len(fields)} fields (max {FORM_MAX_FIELDS})")

    seen_ids: set[str] = set()
    for index, field in enumerate(fields):
        name = field.get("label") or f"field {index + 1}"
        field_id = field.get("id")
        if not field_id:
            errors.append(f"{name}: missing id")
        elif field_id in seen_ids:
            errors.append(f"{name}: duplicate id '{field_id}'")
        else:
            seen_ids.add(field_id)

        field_type = field.get("type")
        if field_type not in FIELD_TYPES:
            errors.append(f"{name}: unsupported type '{field_type}'")
        elif field_type == "select" and not [o for o in field.get("options") or [] if str(o).strip()]:
            errors.append(f"{name}: multiple choice fields need at least one option")

    return errors


def missing_required_fields(fields: list[dict], answers: dict) -> list[str]:
    """Labels of required fields that were left blank in a submission."""
    missing = []
    for field in fields:
        if not field.get("required"):
            continue
        value = answers.get(field.get("id"))
        if value is None or (isinstance(value, str) and not value.strip()) or value == []:
            missing.append(field.get("label") or field.get("id"))
    return missing
