"""Question service — single-question authoring, delete with order compaction,
bulk reorder, and the conditional-logic helpers shared with form reconciliation."""

import logging
import uuid
from collections.abc import Iterable, Mapping

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models.conditional_logic import ConditionalLogic, ConditionalRule
from app.models.form import Form
from app.models.question import CHOICE_QUESTION_TYPES, Question
from app.schemas.forms import (
    ConditionalLogicInput,
    QuestionCreate,
    QuestionFields,
    QuestionOrderItem,
    QuestionUpdate,
)
from app.services.conditional_logic import is_known_operator
from app.services.exceptions import ConditionalRuleError, FormPublishError, QuestionNotFound

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def apply_question_fields(question: Question, fields: QuestionFields) -> None:
    """Overwrite a question's definition from a full question payload.

    ``options`` is only kept for choice-like types; other types clear it.
    """
    question.title = fields.title
    question.description = fields.description
    question.type = fields.type
    question.is_required = fields.is_required
    question.validation = fields.validation.model_dump() if fields.validation is not None else None
    question.options = fields.options if fields.type in CHOICE_QUESTION_TYPES else None


# ---------------------------------------------------------------------------
# Conditional logic authoring
# ---------------------------------------------------------------------------


def _resolve_target(
    raw: str,
    known_ids: set[uuid.UUID],
    keyed: Mapping[str, Question],
) -> uuid.UUID | None:
    if raw in keyed:
        return keyed[raw].id
    try:
        target_id = uuid.UUID(raw)
    except ValueError:
        return None
    return target_id if target_id in known_ids else None


def build_rules(
    question: Question,
    logic: ConditionalLogicInput | None,
    known_ids: set[uuid.UUID],
    keyed: Mapping[str, Question] | None = None,
) -> list[ConditionalRule]:
    """Validate incoming rules and build rule rows for ``question``.

    Targets must resolve to a question of the same form (``known_ids``) or to
    the key of a question created in the same batch, and must not be the
    question itself. Operators must be registered with the engine.
    """
    if logic is None or not logic.enabled:
        return []

    keyed = keyed or {}
    rules: list[ConditionalRule] = []
    for rule in logic.rules:
        target_id = _resolve_target(rule.target_question_id, known_ids, keyed)
        if target_id is None:
            raise ConditionalRuleError(
                f"Rule on question '{question.title}' targets "
                f"'{rule.target_question_id}', which is not a question of this form"
            )
        if target_id == question.id:
            raise ConditionalRuleError(f"Question '{question.title}' cannot depend on its own answer")
        if not is_known_operator(rule.operator):
            raise ConditionalRuleError(
                f"Unknown operator '{rule.operator}' on question '{question.title}'"
            )
        rules.append(
            ConditionalRule(
                target_question_id=target_id,
                operator=rule.operator,
                value=rule.value,
                action=rule.action,
            )
        )
    return rules


def apply_conditional_logic(
    question: Question,
    logic: ConditionalLogicInput | None,
    rules: list[ConditionalRule],
) -> None:
    """Move a question's logic to the incoming state.

    absent / disabled, none stored  → nothing
    enabled, none stored            → create logic with ``rules``
    enabled, stored                 → enable, replace all rules
    disabled, stored                → disable, delete all rules
    """
    if logic is None:
        return

    existing = question.conditional_logic
    if logic.enabled:
        if existing is None:
            question.conditional_logic = ConditionalLogic(enabled=True, rules=rules)
        else:
            existing.enabled = True
            existing.rules = rules
    elif existing is not None:
        existing.enabled = False
        existing.rules = []


def drop_rules_targeting(questions: Iterable[Question], removed_ids: set[uuid.UUID]) -> int:
    """Remove rules of ``questions`` that point at deleted questions. Returns the count removed."""
    if not removed_ids:
        return 0

    dropped = 0
    for question in questions:
        logic = question.conditional_logic
        if logic is None:
            continue
        kept = [rule for rule in logic.rules if rule.target_question_id not in removed_ids]
        if len(kept) != len(logic.rules):
            dropped += len(logic.rules) - len(kept)
            logic.rules = kept
    return dropped


# ---------------------------------------------------------------------------
# Single-question operations
# ---------------------------------------------------------------------------


def get_form_question(form: Form, question_id: uuid.UUID) -> Question:
    for question in form.questions:
        if question.id == question_id:
            return question
    raise QuestionNotFound(question_id)


def create_question(db: Session, form: Form, payload: QuestionCreate) -> Question:
    """Append a question after the current last one."""
    highest = db.execute(select(func.max(Question.order)).where(Question.form_id == form.id)).scalar_one()
    next_order = highest + 1 if highest is not None else 0

    known_ids = {q.id for q in form.questions}
    question = Question(id=uuid.uuid4(), form_id=form.id, order=next_order)
    try:
        apply_question_fields(question, payload)
        rules = build_rules(question, payload.conditional_logic, known_ids)
        apply_conditional_logic(question, payload.conditional_logic, rules)
        db.add(question)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(question)
    logger.info("Question %s added to form %s at order %d", question.id, form.id, next_order)
    return question


def update_question(db: Session, form: Form, question_id: uuid.UUID, payload: QuestionUpdate) -> Question:
    """Partially update a question; omitted fields keep their stored values."""
    question = get_form_question(form, question_id)
    update_data = payload.model_dump(exclude_unset=True, exclude={"options", "conditional_logic"})

    try:
        for field, value in update_data.items():
            if field in ("title", "type", "is_required") and value is None:
                continue
            setattr(question, field, value)

        if question.type not in CHOICE_QUESTION_TYPES:
            question.options = None
        elif payload.options is not None:
            question.options = payload.options

        if payload.conditional_logic is not None:
            known_ids = {q.id for q in form.questions}
            rules = build_rules(question, payload.conditional_logic, known_ids)
            apply_conditional_logic(question, payload.conditional_logic, rules)

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(question)
    return question


def delete_question(db: Session, form: Form, question_id: uuid.UUID) -> None:
    """Delete a question and shift later questions down so orders stay 0..N-1."""
    question = get_form_question(form, question_id)
    if form.is_published and len(form.questions) == 1:
        raise FormPublishError("Cannot delete the only question of a published form")

    deleted_order = question.order
    try:
        form.questions.remove(question)

        later = sorted((q for q in form.questions if q.order > deleted_order), key=lambda q: q.order)
        for index, remaining in enumerate(later):
            remaining.order = deleted_order + index

        dropped = drop_rules_targeting(form.questions, {question_id})
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Question %s deleted from form %s (%d later questions shifted, %d rules dropped)",
        question_id,
        form.id,
        len(later),
        dropped,
    )


def reorder_questions(db: Session, form: Form, items: list[QuestionOrderItem]) -> None:
    """Apply (id, order) pairs as one batch.

    The pairs are taken as given: callers must send a dense permutation.
    """
    by_id = {q.id: q for q in form.questions}
    try:
        for item in items:
            question = by_id.get(item.id)
            if question is None:
                raise QuestionNotFound(item.id)
            question.order = item.order
        db.commit()
    except Exception:
        db.rollback()
        raise
