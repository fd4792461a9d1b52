import uuid
from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

QuestionType = Literal[
    "short_text",
    "paragraph",
    "multiple_choice",
    "checkboxes",
    "dropdown",
    "number",
    "email",
    "date",
    "rating",
    "file_upload",
]


# ---------------------------------------------------------------------------
# Theme / settings schemas
# ---------------------------------------------------------------------------


class ThemeInput(BaseModel):
    """Missing values fall back to the default theme."""

    primary_color: str | None = Field(None, max_length=32)
    background_color: str | None = Field(None, max_length=32)
    font_family: str | None = Field(None, max_length=255)


class ThemeOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    primary_color: str
    background_color: str
    font_family: str


class FormSettingsInput(BaseModel):
    require_sign_in: bool | None = None
    limit_one_response_per_user: bool | None = None
    show_progress_bar: bool | None = None
    shuffle_questions: bool | None = None
    confirmation_message: str | None = None
    redirect_url: str | None = Field(None, max_length=2048)
    notify_on_submission: bool | None = None
    notification_emails: list[str] | None = Field(
        None,
        description="Replaces the stored list when given; omit to keep it",
    )


class PublicFormSettingsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    require_sign_in: bool
    limit_one_response_per_user: bool
    show_progress_bar: bool
    shuffle_questions: bool
    confirmation_message: str
    redirect_url: str | None


class FormSettingsOut(PublicFormSettingsOut):
    notify_on_submission: bool
    notification_emails: list[str] = []

    @field_validator("notification_emails", mode="before")
    @classmethod
    def _flatten_emails(cls, value: Any) -> list[str]:
        return [getattr(item, "email", item) for item in value or []]


# ---------------------------------------------------------------------------
# Question schemas
# ---------------------------------------------------------------------------


class QuestionValidation(BaseModel):
    min: float | None = None
    max: float | None = None
    pattern: str | None = None


class ConditionalRuleInput(BaseModel):
    target_question_id: str = Field(
        ...,
        min_length=1,
        description="Id of a persisted question, or the key of a question created in the same batch",
    )
    operator: str = Field(..., min_length=1, max_length=50)
    value: str | None = None
    action: str = "show"


class ConditionalLogicInput(BaseModel):
    enabled: bool
    rules: list[ConditionalRuleInput] = []


class ConditionalRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    target_question_id: uuid.UUID
    operator: str
    value: str | None
    action: str


class ConditionalLogicOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    enabled: bool
    rules: list[ConditionalRuleOut]


class QuestionFields(BaseModel):
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    type: QuestionType
    is_required: bool = False
    options: list[str] | None = Field(
        None,
        description="Option labels (kept for multiple_choice, checkboxes and dropdown only)",
    )
    validation: QuestionValidation | None = None
    conditional_logic: ConditionalLogicInput | None = None


class QuestionCreate(QuestionFields):
    """Append a single question at the end of the form."""


class QuestionUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    type: QuestionType | None = None
    is_required: bool | None = None
    options: list[str] | None = None
    validation: QuestionValidation | None = None
    conditional_logic: ConditionalLogicInput | None = None


class QuestionCreateEntry(QuestionFields):
    """Batch entry for a question that does not exist yet."""

    action: Literal["create"]
    key: str | None = Field(
        None,
        max_length=100,
        description="Client key other entries' rules can use as target_question_id",
    )
    order: int = Field(..., ge=0)


class QuestionUpdateEntry(QuestionFields):
    """Batch entry overwriting a persisted question."""

    action: Literal["update"]
    id: uuid.UUID
    order: int = Field(..., ge=0)


QuestionEntry = Annotated[QuestionCreateEntry | QuestionUpdateEntry, Field(discriminator="action")]


class QuestionOrderItem(BaseModel):
    id: uuid.UUID
    order: int = Field(..., ge=0)


class QuestionReorderRequest(BaseModel):
    questions: list[QuestionOrderItem] = Field(..., min_length=1)


class QuestionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    form_id: uuid.UUID
    title: str
    description: str | None
    type: str
    is_required: bool
    options: list[Any] | None
    validation: dict[str, Any] | None
    order: int
    conditional_logic: ConditionalLogicOut | None = None


# ---------------------------------------------------------------------------
# Form CRUD schemas
# ---------------------------------------------------------------------------


class FormCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    theme: ThemeInput | None = None
    settings: FormSettingsInput | None = None


class FormUpdate(BaseModel):
    """Desired state of a form, applied as one transaction.

    When ``questions`` is given it is the complete question list: persisted
    questions missing from it are deleted.
    """

    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    is_published: bool | None = None
    theme: ThemeInput | None = None
    settings: FormSettingsInput | None = None
    questions: list[QuestionEntry] | None = None


class FormOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    title: str
    description: str | None
    is_published: bool
    created_at: datetime
    updated_at: datetime


class FormSummary(FormOut):
    theme: ThemeOut | None = None
    settings: FormSettingsOut | None = None
    question_count: int = 0
    response_count: int = 0
    visit_count: int = 0


class FormListResponse(BaseModel):
    items: list[FormSummary]
    total: int
    page: int
    page_size: int


class FormDetailResponse(FormOut):
    theme: ThemeOut | None = None
    settings: FormSettingsOut | None = None
    questions: list[QuestionOut] = []
    response_count: int = 0


class FormFillResponse(BaseModel):
    """Public view of a published form."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: str | None
    theme: ThemeOut | None = None
    settings: PublicFormSettingsOut | None = None
    questions: list[QuestionOut]


class MessageResponse(BaseModel):
    message: str


class CountResponse(BaseModel):
    count: int
