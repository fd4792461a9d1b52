"""Analytics service — visit, completion and per-question drop-off aggregates for a form."""

import uuid
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.answer import Answer
from app.models.form_response import FormResponse
from app.models.form_visit import FormVisit
from app.models.question import Question
from app.schemas.analytics import FormAnalytics, QuestionDropoff


def _percent(part: float, whole: float) -> float:
    """``part / whole * 100`` to two decimals, half up; 0 when ``whole`` is 0."""
    if not whole:
        return 0.0
    rate = Decimal(part) / Decimal(whole) * 100
    return float(rate.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def get_form_analytics(db: Session, form_id: uuid.UUID) -> FormAnalytics:
    """Compute analytics on demand from the stored visits, responses and answers."""
    visits = db.execute(
        select(func.count()).select_from(FormVisit).where(FormVisit.form_id == form_id)
    ).scalar_one()

    total_responses = db.execute(
        select(func.count()).select_from(FormResponse).where(FormResponse.form_id == form_id)
    ).scalar_one()

    completed_responses = db.execute(
        select(func.count())
        .select_from(FormResponse)
        .where(FormResponse.form_id == form_id, FormResponse.is_completed.is_(True))
    ).scalar_one()

    # Answer count per question, in question order (outer join keeps unanswered questions)
    rows = db.execute(
        select(Question.id, Question.title, Question.type, func.count(Answer.id))
        .outerjoin(Answer, Answer.question_id == Question.id)
        .where(Question.form_id == form_id)
        .group_by(Question.id, Question.title, Question.type, Question.order)
        .order_by(Question.order.asc())
    ).all()

    first_count = rows[0][3] if rows else 0
    questions = [
        QuestionDropoff(
            id=question_id,
            title=title,
            type=question_type,
            responses=answer_count,
            dropoff_rate=_percent(first_count - answer_count, first_count),
        )
        for question_id, title, question_type, answer_count in rows
    ]

    return FormAnalytics(
        visits=visits,
        responses=total_responses,
        completed_responses=completed_responses,
        completion_rate=_percent(completed_responses, total_responses),
        questions=questions,
    )
