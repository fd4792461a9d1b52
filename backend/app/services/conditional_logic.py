"""Conditional logic engine — per-question visibility from prior answers.

A question is shown when it has no logic, its logic is disabled, or every
``show`` rule of its logic is satisfied. A rule is satisfied when
``answer(target) <operator> rule.value`` holds; a rule whose target has not
been answered is never satisfied, whatever the operator.

Operators live in a registry so new ones can be added without touching stored
rules. Rules with an action other than ``show`` are ignored.
"""

import logging
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence

from app.models.conditional_logic import ConditionalRule
from app.models.question import Question

logger = logging.getLogger(__name__)

SHOW_ACTION = "show"

Answers = Mapping[uuid.UUID, str | None]


def _as_number(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        return None


def _greater_than(answer: str, expected: str | None) -> bool:
    left, right = _as_number(answer), _as_number(expected)
    return left is not None and right is not None and left > right


def _less_than(answer: str, expected: str | None) -> bool:
    left, right = _as_number(answer), _as_number(expected)
    return left is not None and right is not None and left < right


OPERATORS: dict[str, Callable[[str, str | None], bool]] = {
    "equals": lambda answer, expected: answer == (expected or ""),
    "not_equals": lambda answer, expected: answer != (expected or ""),
    "contains": lambda answer, expected: (expected or "") in answer,
    "not_contains": lambda answer, expected: (expected or "") not in answer,
    "greater_than": _greater_than,
    "less_than": _less_than,
}


def is_known_operator(operator: str) -> bool:
    return operator in OPERATORS


def evaluate_rule(rule: ConditionalRule, answers: Answers) -> bool:
    """Return True when the rule's comparison holds for the current answers."""
    answer = answers.get(rule.target_question_id)
    if answer is None:
        return False

    compare = OPERATORS.get(rule.operator)
    if compare is None:
        logger.warning(
            "Unknown conditional operator %r on rule %s, treating as unsatisfied",
            rule.operator,
            rule.id,
        )
        return False

    return compare(answer, rule.value)


def is_question_visible(question: Question, answers: Answers) -> bool:
    logic = question.conditional_logic
    if logic is None or not logic.enabled:
        return True

    show_rules = [rule for rule in logic.rules if rule.action == SHOW_ACTION]
    return all(evaluate_rule(rule, answers) for rule in show_rules)


def first_visible_question(questions: Sequence[Question], answers: Answers) -> Question | None:
    """First question in ascending order that is visible for ``answers``."""
    for question in sorted(questions, key=lambda q: q.order):
        if is_question_visible(question, answers):
            return question
    return None


def next_visible_question(
    questions: Sequence[Question],
    current: Question,
    answers: Answers,
) -> Question | None:
    """First visible question strictly after ``current`` in ascending order, or None."""
    later = [q for q in questions if q.order > current.order]
    return first_visible_question(later, answers)


def answer_map(pairs: Iterable[tuple[uuid.UUID, str | None]]) -> dict[uuid.UUID, str | None]:
    """Build the question_id → value map used for evaluation."""
    return {question_id: value for question_id, value in pairs}
