from app.models.answer import Answer
from app.models.conditional_logic import ConditionalLogic, ConditionalRule
from app.models.form import Form
from app.models.form_response import FormResponse
from app.models.form_settings import FormSettings, NotificationEmail
from app.models.form_visit import FormVisit
from app.models.question import Question
from app.models.theme import Theme
from app.models.user import User

__all__ = [
    "Answer",
    "ConditionalLogic",
    "ConditionalRule",
    "Form",
    "FormResponse",
    "FormSettings",
    "FormVisit",
    "NotificationEmail",
    "Question",
    "Theme",
    "User",
]
