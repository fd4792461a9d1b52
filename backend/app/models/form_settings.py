import uuid

from sqlalchemy import Boolean, ForeignKey, Index, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

DEFAULT_CONFIRMATION_MESSAGE = "Thank you for your submission!"


class FormSettings(Base):
    __tablename__ = "form_settings"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("forms.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    require_sign_in: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    limit_one_response_per_user: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )
    show_progress_bar: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true", nullable=False)
    shuffle_questions: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false", nullable=False)
    confirmation_message: Mapped[str] = mapped_column(
        Text, nullable=False, default=DEFAULT_CONFIRMATION_MESSAGE, server_default=DEFAULT_CONFIRMATION_MESSAGE
    )
    redirect_url: Mapped[str | None] = mapped_column(String(2048))
    notify_on_submission: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="false", nullable=False
    )

    form: Mapped["Form"] = relationship(back_populates="settings")
    notification_emails: Mapped[list["NotificationEmail"]] = relationship(
        back_populates="form_settings", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<FormSettings form={self.form_id}>"


class NotificationEmail(Base):
    __tablename__ = "notification_emails"
    __table_args__ = (Index("ix_notification_emails_settings_id", "form_settings_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    form_settings_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("form_settings.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    form_settings: Mapped["FormSettings"] = relationship(back_populates="notification_emails")

    def __repr__(self) -> str:
        return f"<NotificationEmail {self.email}>"
