"""Response session service — start, answer, complete.

A response moves NotStarted → InProgress (``start_response``) → Completed
(``submit_answer`` on the last visible question). There is no way back and
no cancel; an abandoned response simply stays in progress.
"""

import logging
import math
import re
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.answer import Answer
from app.models.form import Form
from app.models.form_response import FormResponse
from app.models.question import Question
from app.schemas.responses import FormResponseSummary, GroupedAnswer
from app.services.conditional_logic import answer_map, first_visible_question, next_visible_question
from app.services.exceptions import AnswerValidationError, QuestionNotFound, ResponseNotFound
from app.services.forms import get_published_form

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
NUMERIC_TYPES = frozenset({"number", "rating"})
TEXT_TYPES = frozenset({"short_text", "paragraph", "email"})
SINGLE_CHOICE_TYPES = frozenset({"multiple_choice", "dropdown"})


@dataclass
class StartedResponse:
    response: FormResponse
    form: Form
    questions: list[Question]
    first_question: Question | None


@dataclass
class SubmittedAnswer:
    answer: Answer
    next_question: Question | None
    is_last_question: bool


# ---------------------------------------------------------------------------
# Answer validation
# ---------------------------------------------------------------------------


def validate_answer(question: Question, value: str | None, file_url: str | None) -> list[str]:
    """Check a submitted value against the question's type and constraints."""
    errors: list[str] = []
    label = f"'{question.title}'"

    if value is None or value == "":
        if question.is_required and not file_url:
            errors.append(f"Question {label} is required")
        return errors

    rules = question.validation or {}
    minimum, maximum, pattern = rules.get("min"), rules.get("max"), rules.get("pattern")

    if question.type in NUMERIC_TYPES:
        try:
            number = float(value)
        except ValueError:
            errors.append(f"Question {label}: answer must be a number")
            return errors
        if not math.isfinite(number):
            errors.append(f"Question {label}: answer must be a number")
            return errors
        if minimum is not None and number < minimum:
            errors.append(f"Question {label}: answer must be at least {minimum:g}")
        if maximum is not None and number > maximum:
            errors.append(f"Question {label}: answer must be at most {maximum:g}")
    elif question.type in TEXT_TYPES:
        if minimum is not None and len(value) < minimum:
            errors.append(f"Question {label}: answer must be at least {minimum:g} characters")
        if maximum is not None and len(value) > maximum:
            errors.append(f"Question {label}: answer must be at most {maximum:g} characters")

    if question.type == "email" and not EMAIL_PATTERN.match(value):
        errors.append(f"Question {label}: answer must be an email address")

    if question.type in SINGLE_CHOICE_TYPES and question.options and value not in question.options:
        errors.append(f"Question {label}: '{value}' is not a valid option")

    if pattern:
        try:
            if re.fullmatch(pattern, value) is None:
                errors.append(f"Question {label}: answer does not match the expected format")
        except re.error:
            logger.warning("Question %s has an invalid validation pattern %r", question.id, pattern)

    return errors


# ---------------------------------------------------------------------------
# Session operations
# ---------------------------------------------------------------------------


def start_response(db: Session, form_id: uuid.UUID) -> StartedResponse:
    """Open a response session for a published form."""
    form = get_published_form(db, form_id)

    response = FormResponse(
        form_id=form.id,
        respondent_id=secrets.token_urlsafe(24),
        is_completed=False,
    )
    db.add(response)
    db.commit()
    db.refresh(response)

    questions = list(form.questions)
    logger.info("Response %s started for form %s", response.id, form.id)
    return StartedResponse(
        response=response,
        form=form,
        questions=questions,
        first_question=first_visible_question(questions, {}),
    )


def _get_answer(db: Session, response_id: uuid.UUID, question_id: uuid.UUID) -> Answer | None:
    return db.execute(
        select(Answer).where(Answer.response_id == response_id, Answer.question_id == question_id)
    ).scalar_one_or_none()


def _upsert_answer(
    db: Session,
    response_id: uuid.UUID,
    question_id: uuid.UUID,
    value: str | None,
    file_url: str | None,
) -> Answer:
    answer = _get_answer(db, response_id, question_id)
    if answer is not None:
        answer.value = value
        answer.file_url = file_url
        db.commit()
        return answer

    answer = Answer(response_id=response_id, question_id=question_id, value=value, file_url=file_url)
    db.add(answer)
    try:
        db.commit()
    except IntegrityError:
        # A concurrent submit for the same question inserted first; overwrite it.
        db.rollback()
        answer = _get_answer(db, response_id, question_id)
        if answer is None:
            raise
        answer.value = value
        answer.file_url = file_url
        db.commit()
    return answer


def _mark_completed(db: Session, response: FormResponse) -> bool:
    """Flip the response to completed once. Returns True only for the call that flipped it."""
    result = db.execute(
        update(FormResponse)
        .where(FormResponse.id == response.id, FormResponse.is_completed.is_(False))
        .values(is_completed=True, completed_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def submit_answer(
    db: Session,
    response_id: uuid.UUID,
    question_id: uuid.UUID,
    value: str | None = None,
    file_url: str | None = None,
) -> SubmittedAnswer:
    """Store (or overwrite) an answer and work out where the respondent goes next.

    The next question is the first one after the answered question, in
    ascending order, that the conditional logic shows given every answer so
    far. When there is none the response is completed.
    """
    response = db.get(FormResponse, response_id)
    if response is None:
        raise ResponseNotFound("Response not found")

    questions = list(response.form.questions)
    question = next((q for q in questions if q.id == question_id), None)
    if question is None:
        raise QuestionNotFound(question_id)

    errors = validate_answer(question, value, file_url)
    if errors:
        raise AnswerValidationError(errors)

    answer = _upsert_answer(db, response.id, question.id, value, file_url)

    answers = answer_map(
        db.execute(select(Answer.question_id, Answer.value).where(Answer.response_id == response.id)).all()
    )
    next_question = next_visible_question(questions, question, answers)
    is_last_question = next_question is None

    if is_last_question and _mark_completed(db, response):
        logger.info("Response %s completed for form %s", response.id, response.form_id)

    db.refresh(answer)
    return SubmittedAnswer(answer=answer, next_question=next_question, is_last_question=is_last_question)


def get_response(db: Session, response_id: uuid.UUID, respondent_id: str) -> FormResponse:
    """Load a response for its respondent; the respondent id must match."""
    response = db.execute(
        select(FormResponse).where(
            FormResponse.id == response_id,
            FormResponse.respondent_id == respondent_id,
        )
    ).scalar_one_or_none()
    if response is None:
        raise ResponseNotFound("Response not found")
    return response


# ---------------------------------------------------------------------------
# Owner-side listing
# ---------------------------------------------------------------------------


def list_form_responses(db: Session, form_id: uuid.UUID) -> list[FormResponseSummary]:
    """All responses of a form, newest first, with answers keyed by question title."""
    responses = (
        db.execute(
            select(FormResponse)
            .where(FormResponse.form_id == form_id)
            .order_by(FormResponse.started_at.desc())
        )
        .scalars()
        .all()
    )

    summaries = []
    for response in responses:
        grouped = {
            answer.question.title: GroupedAnswer(
                value=answer.value,
                type=answer.question.type,
                file_url=answer.file_url,
            )
            for answer in response.answers
        }
        summaries.append(
            FormResponseSummary(
                id=response.id,
                respondent_id=response.respondent_id,
                is_completed=response.is_completed,
                started_at=response.started_at,
                completed_at=response.completed_at,
                answers=grouped,
            )
        )
    return summaries
