import uuid

from sqlalchemy import ForeignKey, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

DEFAULT_PRIMARY_COLOR = "#3b82f6"
DEFAULT_BACKGROUND_COLOR = "#f8fafc"
DEFAULT_FONT_FAMILY = "Inter, sans-serif"


class Theme(Base):
    __tablename__ = "themes"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    form_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("forms.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    primary_color: Mapped[str] = mapped_column(
        String(32), nullable=False, default=DEFAULT_PRIMARY_COLOR, server_default=DEFAULT_PRIMARY_COLOR
    )
    background_color: Mapped[str] = mapped_column(
        String(32), nullable=False, default=DEFAULT_BACKGROUND_COLOR, server_default=DEFAULT_BACKGROUND_COLOR
    )
    font_family: Mapped[str] = mapped_column(
        String(255), nullable=False, default=DEFAULT_FONT_FAMILY, server_default=DEFAULT_FONT_FAMILY
    )

    form: Mapped["Form"] = relationship(back_populates="theme")

    def __repr__(self) -> str:
        return f"<Theme form={self.form_id} {self.primary_color}>"
