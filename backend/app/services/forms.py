"""Form service — owner CRUD, the form edit reconciliation, publishing,
and the public fill/visit paths."""

import logging
import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.models.form import Form
from app.models.form_response import FormResponse
from app.models.form_settings import FormSettings, NotificationEmail
from app.models.form_visit import FormVisit
from app.models.question import Question
from app.models.theme import (
    DEFAULT_BACKGROUND_COLOR,
    DEFAULT_FONT_FAMILY,
    DEFAULT_PRIMARY_COLOR,
    Theme,
)
from app.schemas.forms import (
    FormCreate,
    FormSettingsInput,
    FormSummary,
    FormUpdate,
    QuestionEntry,
    QuestionUpdateEntry,
    ThemeInput,
)
from app.services.exceptions import (
    FormNotFound,
    FormNotPublished,
    FormPublishError,
    InvalidQuestionBatch,
    QuestionNotFound,
)
from app.services.questions import (
    apply_conditional_logic,
    apply_question_fields,
    build_rules,
    drop_rules_targeting,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def get_owned_form(db: Session, form_id: uuid.UUID, user_id: uuid.UUID) -> Form:
    """Return the form when ``user_id`` owns it.

    Missing and foreign forms both raise FormNotFound so callers cannot probe
    for other users' forms.
    """
    form = db.execute(
        select(Form).where(Form.id == form_id, Form.user_id == user_id)
    ).scalar_one_or_none()
    if form is None:
        raise FormNotFound("Form not found")
    return form


def get_published_form(db: Session, form_id: uuid.UUID) -> Form:
    form = db.get(Form, form_id)
    if form is None:
        raise FormNotFound("Form not found")
    if not form.is_published:
        raise FormNotPublished("This form is not published and cannot be filled")
    return form


def count_responses(db: Session, form_id: uuid.UUID) -> int:
    return db.execute(
        select(func.count()).select_from(FormResponse).where(FormResponse.form_id == form_id)
    ).scalar_one()


def _counts_by_form(db: Session, model, form_ids: list[uuid.UUID]) -> dict[uuid.UUID, int]:
    if not form_ids:
        return {}
    rows = db.execute(
        select(model.form_id, func.count()).where(model.form_id.in_(form_ids)).group_by(model.form_id)
    ).all()
    return {row[0]: row[1] for row in rows}


def list_forms(
    db: Session,
    user_id: uuid.UUID,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[FormSummary], int]:
    """Newest-first page of the user's forms with question/response/visit counts."""
    total = db.execute(
        select(func.count()).select_from(Form).where(Form.user_id == user_id)
    ).scalar_one()

    offset = (page - 1) * page_size
    forms = (
        db.execute(
            select(Form)
            .where(Form.user_id == user_id)
            .options(
                selectinload(Form.theme),
                selectinload(Form.settings).selectinload(FormSettings.notification_emails),
            )
            .order_by(Form.created_at.desc())
            .offset(offset)
            .limit(page_size)
        )
        .scalars()
        .all()
    )

    form_ids = [form.id for form in forms]
    question_counts = _counts_by_form(db, Question, form_ids)
    response_counts = _counts_by_form(db, FormResponse, form_ids)
    visit_counts = _counts_by_form(db, FormVisit, form_ids)

    items = []
    for form in forms:
        summary = FormSummary.model_validate(form)
        summary.question_count = question_counts.get(form.id, 0)
        summary.response_count = response_counts.get(form.id, 0)
        summary.visit_count = visit_counts.get(form.id, 0)
        items.append(summary)
    return items, total


# ---------------------------------------------------------------------------
# Theme / settings
# ---------------------------------------------------------------------------


def apply_theme(form: Form, data: ThemeInput) -> Theme:
    """Update the form's theme in place or create one; blanks fall back to defaults."""
    theme = form.theme
    if theme is None:
        theme = Theme()
        form.theme = theme

    theme.primary_color = data.primary_color or DEFAULT_PRIMARY_COLOR
    theme.background_color = data.background_color or DEFAULT_BACKGROUND_COLOR
    theme.font_family = data.font_family or DEFAULT_FONT_FAMILY
    return theme


def _normalize_emails(emails: list[str]) -> list[str]:
    seen: dict[str, None] = {}
    for email in emails:
        cleaned = email.strip().lower()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


def apply_settings(form: Form, data: FormSettingsInput) -> FormSettings:
    """Update-or-create the form's settings.

    Unset fields keep their stored (or default) values. A non-null
    ``notification_emails`` replaces the whole stored list.
    """
    form_settings = form.settings
    if form_settings is None:
        form_settings = FormSettings()
        form.settings = form_settings

    values = data.model_dump(exclude_unset=True, exclude={"notification_emails"})
    for field, value in values.items():
        if value is None and field != "redirect_url":
            continue
        setattr(form_settings, field, value)

    if data.notification_emails is not None:
        form_settings.notification_emails = [
            NotificationEmail(email=email) for email in _normalize_emails(data.notification_emails)
        ]
    return form_settings


# ---------------------------------------------------------------------------
# Form CRUD
# ---------------------------------------------------------------------------


def create_form(db: Session, user_id: uuid.UUID, payload: FormCreate) -> Form:
    form = Form(
        user_id=user_id,
        title=payload.title,
        description=payload.description,
        is_published=False,
    )
    if payload.theme is not None:
        apply_theme(form, payload.theme)
    if payload.settings is not None:
        apply_settings(form, payload.settings)

    db.add(form)
    db.commit()
    db.refresh(form)
    logger.info("Form %s created by user %s", form.id, user_id)
    return form


def delete_form(db: Session, form: Form) -> None:
    """Delete the form together with everything it owns."""
    form_id = form.id
    db.delete(form)
    db.commit()
    logger.info("Form %s deleted", form_id)


def publish_form(db: Session, form: Form) -> Form:
    if not form.questions:
        raise FormPublishError("Cannot publish a form with no questions")

    form.is_published = True
    db.commit()
    db.refresh(form)
    logger.info("Form %s published", form.id)
    return form


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


def _check_batch(entries: list[QuestionEntry]) -> None:
    orders = sorted(entry.order for entry in entries)
    if orders != list(range(len(entries))):
        raise InvalidQuestionBatch(
            f"Question orders must be 0..{len(entries) - 1} without gaps or duplicates, got {orders}"
        )

    update_ids = [entry.id for entry in entries if isinstance(entry, QuestionUpdateEntry)]
    if len(update_ids) != len(set(update_ids)):
        raise InvalidQuestionBatch("Each persisted question may appear only once in a batch")

    keys = [entry.key for entry in entries if not isinstance(entry, QuestionUpdateEntry) and entry.key]
    if len(keys) != len(set(keys)):
        raise InvalidQuestionBatch("Question keys must be unique within a batch")


def reconcile_questions(form: Form, entries: list[QuestionEntry]) -> tuple[int, int, int]:
    """Bring the form's questions in line with ``entries``.

    Update entries overwrite the persisted question with that id, create
    entries add new questions, and persisted questions absent from the batch
    are deleted with their logic. Rules are validated against the batch after
    every question exists, so a rule may target a question created in the
    same batch through its ``key``.

    Returns (created, updated, deleted) counts. Nothing is committed here.
    """
    _check_batch(entries)

    existing = {question.id: question for question in form.questions}
    keyed: dict[str, Question] = {}
    applied: list[tuple[Question, QuestionEntry]] = []
    created = updated = 0

    for entry in entries:
        if isinstance(entry, QuestionUpdateEntry):
            question = existing.get(entry.id)
            if question is None:
                raise QuestionNotFound(entry.id)
            updated += 1
        else:
            question = Question(id=uuid.uuid4(), form=form)
            if entry.key:
                keyed[entry.key] = question
            created += 1
        apply_question_fields(question, entry)
        question.order = entry.order
        applied.append((question, entry))

    kept_ids = {entry.id for entry in entries if isinstance(entry, QuestionUpdateEntry)}
    removed = [question for question_id, question in existing.items() if question_id not in kept_ids]
    for question in removed:
        form.questions.remove(question)

    batch_ids = {question.id for question, _ in applied}
    for question, entry in applied:
        rules = build_rules(question, entry.conditional_logic, batch_ids, keyed)
        apply_conditional_logic(question, entry.conditional_logic, rules)

    drop_rules_targeting(form.questions, {question.id for question in removed})
    return created, updated, len(removed)


def update_form(db: Session, form: Form, payload: FormUpdate) -> Form:
    """Apply a full form edit as one transaction.

    Covers title/description, publish flag, theme, settings (including the
    notification email list) and the question list. Any failure rolls back
    every change.
    """
    counts = (0, 0, 0)
    try:
        if payload.title is not None:
            form.title = payload.title
        if "description" in payload.model_fields_set:
            form.description = payload.description
        if payload.theme is not None:
            apply_theme(form, payload.theme)
        if payload.settings is not None:
            apply_settings(form, payload.settings)
        if payload.questions is not None:
            counts = reconcile_questions(form, payload.questions)
        if payload.is_published is not None:
            form.is_published = payload.is_published

        if form.is_published and not form.questions:
            raise FormPublishError("Cannot publish a form with no questions")

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(form)
    logger.info(
        "Form %s reconciled (%d created, %d updated, %d deleted)",
        form.id,
        *counts,
    )
    return form


# ---------------------------------------------------------------------------
# Public paths
# ---------------------------------------------------------------------------


def record_visit(
    db: Session,
    form: Form,
    ip_address: str | None = None,
    user_agent: str | None = None,
    referrer: str | None = None,
) -> FormVisit:
    visit = FormVisit(
        form_id=form.id,
        ip_address=ip_address,
        user_agent=user_agent,
        referrer=referrer,
    )
    db.add(visit)
    db.commit()
    return visit


def get_form_to_fill(
    db: Session,
    form_id: uuid.UUID,
    ip_address: str | None = None,
    user_agent: str | None = None,
    referrer: str | None = None,
) -> Form:
    """Return a published form for filling and record the page view."""
    form = get_published_form(db, form_id)
    record_visit(db, form, ip_address, user_agent, referrer)
    db.refresh(form)
    return form


def track_form_visit(
    db: Session,
    form_id: uuid.UUID,
    ip_address: str | None = None,
    user_agent: str | None = None,
    referrer: str | None = None,
) -> FormVisit:
    """Record a view of a published form. Unpublished forms count as missing."""
    form = db.execute(
        select(Form).where(Form.id == form_id, Form.is_published.is_(True))
    ).scalar_one_or_none()
    if form is None:
        raise FormNotFound("Form not found or not published")
    return record_visit(db, form, ip_address, user_agent, referrer)
