import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.forms import QuestionOut

# ---------------------------------------------------------------------------
# Response session schemas
# ---------------------------------------------------------------------------


class ResponseHandle(BaseModel):
    id: uuid.UUID
    respondent_id: str


class StartedFormSummary(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None
    question_count: int
    questions: list[QuestionOut]
    first_question: QuestionOut | None


class StartResponseOut(BaseModel):
    response: ResponseHandle
    form: StartedFormSummary


class AnswerSubmission(BaseModel):
    question_id: uuid.UUID
    value: str | None = None
    file_url: str | None = Field(None, max_length=2048)


class AnswerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    response_id: uuid.UUID
    question_id: uuid.UUID
    value: str | None
    file_url: str | None


class SubmitAnswerOut(BaseModel):
    answer: AnswerOut
    next_question: QuestionOut | None
    is_last_question: bool


class ResponseAnswerDetail(BaseModel):
    question_id: uuid.UUID
    question_title: str
    question_type: str
    value: str | None
    file_url: str | None


class ResponseDetailOut(BaseModel):
    id: uuid.UUID
    form_id: uuid.UUID
    respondent_id: str
    form_title: str
    form_description: str | None
    is_completed: bool
    started_at: datetime
    completed_at: datetime | None
    answers: list[ResponseAnswerDetail]


# ---------------------------------------------------------------------------
# Owner-side response listing
# ---------------------------------------------------------------------------


class GroupedAnswer(BaseModel):
    value: str | None
    type: str
    file_url: str | None = None


class FormResponseSummary(BaseModel):
    id: uuid.UUID
    respondent_id: str
    is_completed: bool
    started_at: datetime
    completed_at: datetime | None
    answers: dict[str, GroupedAnswer] = Field(
        ...,
        description="Answers keyed by question title",
    )


class FormResponsesOut(BaseModel):
    responses: list[FormResponseSummary]


# ---------------------------------------------------------------------------
# File uploads
# ---------------------------------------------------------------------------


class UploadUrlRequest(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., min_length=1, max_length=255)


class UploadUrlOut(BaseModel):
    upload_url: str
    file_url: str
    expires_in: int
