import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

CHOICE_QUESTION_TYPES = frozenset({"multiple_choice", "checkboxes", "dropdown"})


class Question(Base):
    """One prompt within a form.

    ``order`` is zero-based and dense within a form. ``options`` is a list of
    option labels and is only kept for choice-like types. ``validation`` is a
    dict with optional ``min``, ``max`` and ``pattern`` keys:
        {"min": 1, "max": 10, "pattern": null}
    """

    __tablename__ = "questions"
    __table_args__ = (
        Index("ix_questions_form_id", "form_id"),
        Index("ix_questions_form_order", "form_id", "order"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("forms.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    options: Mapped[list | None] = mapped_column(JSONB)
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    validation: Mapped[dict | None] = mapped_column(JSONB)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())

    form: Mapped["Form"] = relationship(back_populates="questions")
    conditional_logic: Mapped["ConditionalLogic"] = relationship(
        back_populates="question", uselist=False, cascade="all, delete-orphan"
    )
    answers: Mapped[list["Answer"]] = relationship(back_populates="question", cascade="all, delete")

    @property
    def is_choice(self) -> bool:
        return self.type in CHOICE_QUESTION_TYPES

    def __repr__(self) -> str:
        return f"<Question #{self.order} {self.title} ({self.type})>"
