import uuid
from datetime import datetime

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base


class Form(Base):
    """A form authored by one user.

    Owns its questions, theme, settings, responses and visits; deleting the
    form deletes all of them. A form is only ever published while it has at
    least one question.
    """

    __tablename__ = "forms"
    __table_args__ = (
        Index("ix_forms_user_id", "user_id"),
        Index("ix_forms_user_published", "user_id", "is_published"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(server_default=func.now(), onupdate=func.now())

    user: Mapped["User"] = relationship(back_populates="forms")
    questions: Mapped[list["Question"]] = relationship(
        back_populates="form",
        cascade="all, delete-orphan",
        order_by="Question.order",
    )
    responses: Mapped[list["FormResponse"]] = relationship(back_populates="form", cascade="all, delete-orphan")
    visits: Mapped[list["FormVisit"]] = relationship(back_populates="form", cascade="all, delete-orphan")
    theme: Mapped["Theme"] = relationship(
        back_populates="form", uselist=False, cascade="all, delete-orphan"
    )
    settings: Mapped["FormSettings"] = relationship(
        back_populates="form", uselist=False, cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        state = "published" if self.is_published else "draft"
        return f"<Form {self.title} ({state})>"
