import uuid

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class ConditionalLogic(Base):
    """Visibility rules attached to a single question.

    When ``enabled`` is false the rules are not evaluated at all.
    """

    __tablename__ = "conditional_logic"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    question_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("questions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    enabled: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)

    question: Mapped["Question"] = relationship(back_populates="conditional_logic")
    rules: Mapped[list["ConditionalRule"]] = relationship(
        back_populates="conditional_logic", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<ConditionalLogic question={self.question_id} enabled={self.enabled}>"


class ConditionalRule(Base):
    """``answer(target_question) <operator> value`` → ``action``.

    ``target_question_id`` is a lookup reference only; the target question is
    owned by its form, not by the rule.
    """

    __tablename__ = "conditional_rules"
    __table_args__ = (
        Index("ix_conditional_rules_logic_id", "conditional_logic_id"),
        Index("ix_conditional_rules_target", "target_question_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    conditional_logic_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("conditional_logic.id", ondelete="CASCADE"), nullable=False
    )
    target_question_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    operator: Mapped[str] = mapped_column(String(50), nullable=False)
    value: Mapped[str | None] = mapped_column(Text)
    action: Mapped[str] = mapped_column(String(50), nullable=False, default="show", server_default="show")

    conditional_logic: Mapped["ConditionalLogic"] = relationship(back_populates="rules")

    def __repr__(self) -> str:
        return f"<ConditionalRule {self.target_question_id} {self.operator} {self.value!r}>"
