"""Respondent API — start a response, submit answers, read back a response, upload URLs.

None of these routes require a login; the respondent id handed out by
``/start/{form_id}`` is the only credential a respondent has.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.schemas.forms import QuestionOut
from app.schemas.responses import (
    AnswerOut,
    AnswerSubmission,
    ResponseAnswerDetail,
    ResponseDetailOut,
    ResponseHandle,
    StartedFormSummary,
    StartResponseOut,
    SubmitAnswerOut,
    UploadUrlOut,
    UploadUrlRequest,
)
from app.services.exceptions import (
    AnswerValidationError,
    FormNotFound,
    FormNotPublished,
    QuestionNotFound,
    ResponseNotFound,
    StorageUnavailable,
)
from app.services.responses import get_response, start_response, submit_answer
from app.services.storage import build_upload_target

router = APIRouter()


@router.post("/start/{form_id}", response_model=StartResponseOut, status_code=201)
def start(form_id: uuid.UUID, db: Session = Depends(get_db)):
    try:
        started = start_response(db, form_id)
    except (FormNotFound, FormNotPublished):
        raise HTTPException(status_code=404, detail="Form not found or not published")

    form = started.form
    return StartResponseOut(
        response=ResponseHandle(id=started.response.id, respondent_id=started.response.respondent_id),
        form=StartedFormSummary(
            id=form.id,
            title=form.title,
            description=form.description,
            question_count=len(started.questions),
            questions=[QuestionOut.model_validate(q) for q in started.questions],
            first_question=QuestionOut.model_validate(started.first_question) if started.first_question else None,
        ),
    )


@router.post("/upload-url", response_model=UploadUrlOut)
def upload_url(payload: UploadUrlRequest):
    try:
        target = build_upload_target(payload.file_name, payload.content_type)
    except StorageUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return UploadUrlOut(upload_url=target.upload_url, file_url=target.file_url, expires_in=target.expires_in)


@router.post("/{response_id}/answers", response_model=SubmitAnswerOut)
def answer(response_id: uuid.UUID, payload: AnswerSubmission, db: Session = Depends(get_db)):
    try:
        submitted = submit_answer(db, response_id, payload.question_id, payload.value, payload.file_url)
    except (ResponseNotFound, QuestionNotFound) as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except AnswerValidationError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    return SubmitAnswerOut(
        answer=AnswerOut.model_validate(submitted.answer),
        next_question=QuestionOut.model_validate(submitted.next_question) if submitted.next_question else None,
        is_last_question=submitted.is_last_question,
    )


@router.get("/{response_id}", response_model=ResponseDetailOut)
def get_one(
    response_id: uuid.UUID,
    respondent_id: str | None = Query(None),
    db: Session = Depends(get_db),
):
    if not respondent_id:
        raise HTTPException(status_code=400, detail="Respondent ID is required")

    try:
        response = get_response(db, response_id, respondent_id)
    except ResponseNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    return ResponseDetailOut(
        id=response.id,
        form_id=response.form_id,
        respondent_id=response.respondent_id,
        form_title=response.form.title,
        form_description=response.form.description,
        is_completed=response.is_completed,
        started_at=response.started_at,
        completed_at=response.completed_at,
        answers=[
            ResponseAnswerDetail(
                question_id=a.question_id,
                question_title=a.question.title,
                question_type=a.question.type,
                value=a.value,
                file_url=a.file_url,
            )
            for a in sorted(response.answers, key=lambda a: a.question.order)
        ],
    )
