"""Initial migration

Revision ID: 001
Revises: 
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create participants and letters tables."""

    op.create_table('participants',
        sa.Column('principal_id', sa.String(length=255), nullable=False),
        sa.Column('display_name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('principal_id')
    )

    op.create_table('letters',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('sender_id', sa.String(length=255), nullable=False),
        sa.Column('recipient_id', sa.String(length=255), nullable=False),
        sa.Column('subject', sa.Text(), nullable=True),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('mood', sa.Enum('formal', 'informative', 'appreciation', 'reminder', 'announcement', 'general', name='mood'), nullable=False),
        sa.Column('voice_path', sa.String(length=500), nullable=True),
        sa.Column('attachments', sa.JSON(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("length(trim(body)) > 0", name='check_letter_body_not_empty')
    )
    op.create_index('idx_letter_sender_created', 'letters', ['sender_id', 'created_at'])
    op.create_index('idx_letter_recipient_created', 'letters', ['recipient_id', 'created_at'])


def downgrade() -> None:
    """Drop letters and participants tables."""
    op.drop_index('idx_letter_recipient_created', table_name='letters')
    op.drop_index('idx_letter_sender_created', table_name='letters')
    op.drop_table('letters')
    op.drop_table('participants')
    sa.Enum(name='mood').drop(op.get_bind(), checkfirst=True)
