from app.models.subscription import Subscription
from app.models.api_usage import ApiUsage
from app.models.form import Form
from app.models.submission import FormSubmission

__all__ = [
    "Subscription",
    "ApiUsage",
    "Form",
    "FormSubmission",
]
