"""email tracking — partition pending/sent sur pulses

Revision ID: 002_email_tracking
Create Date: 09/03/2026
"""
from alembic import op
import sqlalchemy as sa

revision = '002_email_tracking'
down_revision = '001_initial'


def upgrade() -> None:
    op.add_column("pulses", sa.Column("pending_emails", sa.JSON, nullable=True))
    op.add_column("pulses", sa.Column("sent_emails", sa.JSON, nullable=True))

    # Pulses existants : rien n'est considéré comme envoyé
    op.execute("""
        UPDATE pulses
        SET pending_emails = emails,
            sent_emails = '[]'
        WHERE pending_emails IS NULL
    """)


def downgrade() -> None:
    op.drop_column("pulses", "sent_emails")
    op.drop_column("pulses", "pending_emails")
