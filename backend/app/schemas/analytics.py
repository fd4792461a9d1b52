import uuid

from pydantic import BaseModel


class QuestionDropoff(BaseModel):
    id: uuid.UUID
    title: str
    type: str
    responses: int
    dropoff_rate: float


class FormAnalytics(BaseModel):
    visits: int
    responses: int
    completed_responses: int
    completion_rate: float
    questions: list[QuestionDropoff]
