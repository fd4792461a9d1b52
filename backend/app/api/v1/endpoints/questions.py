"""Question API — single-question authoring under a form, delete, and bulk reorder."""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.database import get_db
from app.models.form import Form
from app.models.user import User
from app.schemas.forms import (
    MessageResponse,
    QuestionCreate,
    QuestionOut,
    QuestionReorderRequest,
    QuestionUpdate,
)
from app.services.exceptions import (
    ConditionalRuleError,
    FormNotFound,
    FormPublishError,
    QuestionNotFound,
)
from app.services.forms import get_owned_form
from app.services.questions import (
    create_question,
    delete_question,
    reorder_questions,
    update_question,
)

router = APIRouter()


def _get_form_or_404(form_id: uuid.UUID, user: User, db: Session) -> Form:
    try:
        return get_owned_form(db, form_id, user.id)
    except FormNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.post("/{form_id}/questions", response_model=QuestionOut, status_code=201)
def create(
    form_id: uuid.UUID,
    payload: QuestionCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    try:
        return create_question(db, form, payload)
    except ConditionalRuleError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


# Registered before /{question_id} so "reorder" is not parsed as an id
@router.put("/{form_id}/questions/reorder", response_model=MessageResponse)
def reorder(
    form_id: uuid.UUID,
    payload: QuestionReorderRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    try:
        reorder_questions(db, form, payload.questions)
    except QuestionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return MessageResponse(message="Questions reordered successfully")


@router.put("/{form_id}/questions/{question_id}", response_model=QuestionOut)
def update(
    form_id: uuid.UUID,
    question_id: uuid.UUID,
    payload: QuestionUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    try:
        return update_question(db, form, question_id, payload)
    except QuestionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except ConditionalRuleError as exc:
        raise HTTPException(status_code=422, detail=str(exc))


@router.delete("/{form_id}/questions/{question_id}", response_model=MessageResponse)
def delete(
    form_id: uuid.UUID,
    question_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    try:
        delete_question(db, form, question_id)
    except QuestionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except FormPublishError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return MessageResponse(message="Question deleted successfully")
