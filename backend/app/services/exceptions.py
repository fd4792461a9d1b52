"""Form builder service exceptions."""

import uuid


class FormBuilderError(Exception):
    """Base exception for form builder operations."""


class FormNotFound(FormBuilderError):
    """Raised when a form does not exist or is not owned by the caller."""


class FormNotPublished(FormBuilderError):
    """Raised when a public operation targets an unpublished form."""


class FormPublishError(FormBuilderError):
    """Raised when an operation would leave a published form without questions."""


class QuestionNotFound(FormBuilderError):
    """Raised when a question does not belong to the form being operated on."""

    def __init__(self, question_id: uuid.UUID) -> None:
        self.question_id = question_id
        super().__init__(f"Question {question_id} not found in this form")


class ResponseNotFound(FormBuilderError):
    """Raised when a response does not exist or the respondent id does not match."""


class InvalidQuestionBatch(FormBuilderError):
    """Raised when a question batch is malformed (orders, duplicate ids or keys)."""


class ConditionalRuleError(FormBuilderError):
    """Raised when a conditional rule is authored with an invalid target or operator."""


class AnswerValidationError(FormBuilderError):
    """Raised when a submitted answer violates its question's constraints."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__("; ".join(errors))


class EmailAlreadyRegistered(FormBuilderError):
    """Raised when registering an email that already has an account."""


class StorageUnavailable(FormBuilderError):
    """Raised when an upload URL cannot be presigned."""
