"""
CSV export of form responses for the owner dashboard.
"""
import csv
import io
import re


def export_filename(title: str) -> str:
    slug = re.sub(r"[^a-z0-9]", "_", title or "form", flags=re.IGNORECASE).lower()
    return f"{slug}_responses.csv"


def _cell(value) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)


def responses_to_csv(fields: list[dict], submissions: list) -> str:
    """
    One header row (Submitted At + field labels in form order), then one row per submission.
    Answers for fields that no longer exist on the form are dropped.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["Submitted At"] + [f.get("label") or f.get("id") for f in fields])
    for submission in submissions:
        data = submission.response_data or {}
        row = [submission.submitted_at.strftime("%Y-%m-%d %H:%M:%S")]
        row.extend(_cell(data.get(f.get("id"))) for f in fields)
        writer.writerow(row)
    return buffer.getvalue()
