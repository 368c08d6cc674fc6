"""Add technician/updated_at to equipment_quotes and processed_inbound_messages

Revision ID: c58e2d4a9f10
Revises: a3f19c0e7b21
Create Date: 2026-10-21 16:40:03.512877

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c58e2d4a9f10'
down_revision: Union[str, Sequence[str], None] = 'a3f19c0e7b21'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Track who quoted each machine and which inbound messages were applied."""
    op.add_column('equipment_quotes', sa.Column('technician_id', sa.String(length=64), nullable=True))
    op.add_column(
        'equipment_quotes',
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'processed_inbound_messages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('message_id', sa.String(length=64), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('message_id'),
    )
    op.create_index('ix_processed_inbound_messages_id', 'processed_inbound_messages', ['id'])
    op.create_index('ix_processed_inbound_messages_processed_at', 'processed_inbound_messages', ['processed_at'])


def downgrade() -> None:
    """Drop processed_inbound_messages and the equipment_quotes audit columns."""
    op.drop_index('ix_processed_inbound_messages_processed_at', table_name='processed_inbound_messages')
    op.drop_index('ix_processed_inbound_messages_id', table_name='processed_inbound_messages')
    op.drop_table('processed_inbound_messages')
    op.drop_column('equipment_quotes', 'updated_at')
    op.drop_column('equipment_quotes', 'technician_id')
