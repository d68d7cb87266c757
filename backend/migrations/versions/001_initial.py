"""initial schema — pulses, responses, analyses

Revision ID: 001_initial
Create Date: 02/03/2026
"""
from alembic import op
import sqlalchemy as sa

revision = '001_initial'
down_revision = None


def upgrade() -> None:
    # Colonnes pending/sent ajoutées par 002_email_tracking
    op.create_table("pulses",
        sa.Column("id", sa.String, primary_key=True),
        sa.Column("name", sa.String, nullable=True),
        sa.Column("user_id", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("emails", sa.JSON, nullable=False),
        sa.Column("custom_questions", sa.JSON, nullable=True),
        sa.Column("response_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("has_analysis", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("analysis_content", sa.Text, nullable=True),
        sa.Column("last_checked", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_pulses_id", "pulses", ["id"])
    op.create_index("ix_pulses_user_id", "pulses", ["user_id"])

    op.create_table("responses",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("pulse_id", sa.String, sa.ForeignKey("pulses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("respondent_id", sa.String, nullable=False, server_default="anonymous"),
        sa.Column("response", sa.Text, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_responses_pulse_id", "responses", ["pulse_id"])

    op.create_table("analyses",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("pulse_id", sa.String, sa.ForeignKey("pulses.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("analyses")
    op.drop_index("ix_responses_pulse_id", table_name="responses")
    op.drop_table("responses")
    op.drop_index("ix_pulses_user_id", table_name="pulses")
    op.drop_index("ix_pulses_id", table_name="pulses")
    op.drop_table("pulses")
