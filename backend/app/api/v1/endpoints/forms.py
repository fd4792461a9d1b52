"""Form API — owner CRUD, publishing, responses, analytics, and the public fill/visit paths."""

import csv
import io
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import StreamingResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.auth import get_current_user
from app.core.database import get_db
from app.models.form import Form
from app.models.form_response import FormResponse
from app.models.user import User
from app.schemas.analytics import FormAnalytics
from app.schemas.forms import (
    CountResponse,
    FormCreate,
    FormDetailResponse,
    FormFillResponse,
    FormListResponse,
    FormUpdate,
    MessageResponse,
)
from app.schemas.responses import FormResponsesOut
from app.services.analytics import get_form_analytics
from app.services.exceptions import (
    ConditionalRuleError,
    FormNotFound,
    FormNotPublished,
    FormPublishError,
    InvalidQuestionBatch,
    QuestionNotFound,
)
from app.services.forms import (
    count_responses,
    create_form,
    delete_form,
    get_form_to_fill,
    get_owned_form,
    list_forms,
    publish_form,
    track_form_visit,
    update_form,
)
from app.services.responses import list_form_responses

router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_form_or_404(form_id: uuid.UUID, user: User, db: Session) -> Form:
    try:
        return get_owned_form(db, form_id, user.id)
    except FormNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))


def _form_detail(db: Session, form: Form) -> FormDetailResponse:
    detail = FormDetailResponse.model_validate(form)
    detail.response_count = count_responses(db, form.id)
    return detail


def _visit_context(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
        "referrer": request.headers.get("referer"),
    }


# ---------------------------------------------------------------------------
# Form CRUD
# ---------------------------------------------------------------------------


@router.post("/", response_model=FormDetailResponse, status_code=201)
def create(
    payload: FormCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = create_form(db, current_user.id, payload)
    return _form_detail(db, form)


@router.get("/", response_model=FormListResponse)
def list_all(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = list_forms(db, current_user.id, page, page_size)
    return FormListResponse(items=items, total=total, page=page, page_size=page_size)


@router.get("/{form_id}", response_model=FormDetailResponse)
def get_form(
    form_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    return _form_detail(db, form)


@router.put("/{form_id}", response_model=FormDetailResponse)
def update(
    form_id: uuid.UUID,
    payload: FormUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    try:
        form = update_form(db, form, payload)
    except QuestionNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except FormPublishError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except (InvalidQuestionBatch, ConditionalRuleError) as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return _form_detail(db, form)


@router.delete("/{form_id}", status_code=204)
def delete(
    form_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    delete_form(db, form)
    return Response(status_code=204)


@router.put("/{form_id}/publish", response_model=FormDetailResponse)
def publish(
    form_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    try:
        form = publish_form(db, form)
    except FormPublishError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _form_detail(db, form)


# ---------------------------------------------------------------------------
# Public fill / visit
# ---------------------------------------------------------------------------


@router.get("/{form_id}/fill", response_model=FormFillResponse)
def fill(form_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    """Published form for respondents; records a visit."""
    try:
        return get_form_to_fill(db, form_id, **_visit_context(request))
    except FormNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except FormNotPublished as exc:
        raise HTTPException(status_code=403, detail=str(exc))


@router.post("/{form_id}/visit", response_model=MessageResponse)
def visit(form_id: uuid.UUID, request: Request, db: Session = Depends(get_db)):
    try:
        track_form_visit(db, form_id, **_visit_context(request))
    except FormNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    return MessageResponse(message="Visit tracked")


# ---------------------------------------------------------------------------
# Analytics / responses
# ---------------------------------------------------------------------------


@router.get("/{form_id}/analytics", response_model=FormAnalytics)
def analytics(
    form_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    return get_form_analytics(db, form.id)


@router.get("/{form_id}/responses", response_model=FormResponsesOut)
def responses(
    form_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    return FormResponsesOut(responses=list_form_responses(db, form.id))


@router.get("/{form_id}/responses/count", response_model=CountResponse)
def responses_count(
    form_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    form = _get_form_or_404(form_id, current_user, db)
    return CountResponse(count=count_responses(db, form.id))


@router.get("/{form_id}/responses/download")
def download_responses(
    form_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Export all form responses as CSV, one column per question."""
    form = _get_form_or_404(form_id, current_user, db)

    form_responses = (
        db.execute(
            select(FormResponse).where(FormResponse.form_id == form.id).order_by(FormResponse.started_at.asc())
        )
        .scalars()
        .all()
    )
    questions = list(form.questions)

    output = io.StringIO()
    writer = csv.writer(output)

    # Header row: response_id, respondent_id, Q1 title, Q2 title, ..., completed_at
    header = ["response_id", "respondent_id"]
    header.extend(f"Q{i + 1}: {q.title}" for i, q in enumerate(questions))
    header.append("completed_at")
    writer.writerow(header)

    for resp in form_responses:
        by_question = {answer.question_id: answer for answer in resp.answers}
        row = [str(resp.id), resp.respondent_id]
        for question in questions:
            answer = by_question.get(question.id)
            if answer is None:
                row.append("")
            else:
                row.append(answer.value if answer.value is not None else answer.file_url or "")
        row.append(resp.completed_at.isoformat() if resp.completed_at else "")
        writer.writerow(row)

    output.seek(0)

    filename = f"form_{form.title}_{form.id}.csv"
    safe_filename = "".join(c if c.isalnum() or c in "-_." else "_" for c in filename)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{safe_filename}"'},
    )
