"""add themes, form settings, notification emails and conditional logic

Revision ID: 9e3f5b8c6a21
Revises: 4c1e9a7b2d10
Create Date: 2026-10-08 14:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "9e3f5b8c6a21"
down_revision: Union[str, None] = "4c1e9a7b2d10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "themes",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("form_id", sa.UUID(), nullable=False),
        sa.Column("primary_color", sa.String(length=32), server_default="#3b82f6", nullable=False),
        sa.Column("background_color", sa.String(length=32), server_default="#f8fafc", nullable=False),
        sa.Column("font_family", sa.String(length=255), server_default="Inter, sans-serif", nullable=False),
        sa.ForeignKeyConstraint(["form_id"], ["forms.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("form_id"),
    )

    op.create_table(
        "form_settings",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("form_id", sa.UUID(), nullable=False),
        sa.Column("require_sign_in", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("limit_one_response_per_user", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("show_progress_bar", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("shuffle_questions", sa.Boolean(), server_default="false", nullable=False),
        sa.Column(
            "confirmation_message",
            sa.Text(),
            server_default="Thank you for your submission!",
            nullable=False,
        ),
        sa.Column("redirect_url", sa.String(length=2048), nullable=True),
        sa.Column("notify_on_submission", sa.Boolean(), server_default="false", nullable=False),
        sa.ForeignKeyConstraint(["form_id"], ["forms.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("form_id"),
    )

    op.create_table(
        "notification_emails",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("form_settings_id", sa.UUID(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.ForeignKeyConstraint(["form_settings_id"], ["form_settings.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_notification_emails_settings_id", "notification_emails", ["form_settings_id"], unique=False
    )

    op.create_table(
        "conditional_logic",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("question_id", sa.UUID(), nullable=False),
        sa.Column("enabled", sa.Boolean(), server_default="false", nullable=False),
        sa.ForeignKeyConstraint(["question_id"], ["questions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("question_id"),
    )

    op.create_table(
        "conditional_rules",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("conditional_logic_id", sa.UUID(), nullable=False),
        sa.Column("target_question_id", sa.UUID(), nullable=False),
        sa.Column("operator", sa.String(length=50), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("action", sa.String(length=50), server_default="show", nullable=False),
        sa.ForeignKeyConstraint(["conditional_logic_id"], ["conditional_logic.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_conditional_rules_logic_id", "conditional_rules", ["conditional_logic_id"], unique=False
    )
    op.create_index("ix_conditional_rules_target", "conditional_rules", ["target_question_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_conditional_rules_target", table_name="conditional_rules")
    op.drop_index("ix_conditional_rules_logic_id", table_name="conditional_rules")
    op.drop_table("conditional_rules")
    op.drop_table("conditional_logic")
    op.drop_index("ix_notification_emails_settings_id", table_name="notification_emails")
    op.drop_table("notification_emails")
    op.drop_table("form_settings")
    op.drop_table("themes")
