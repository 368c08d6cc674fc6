"""Initial toolshop schema

Revision ID: a3f19c0e7b21
Revises:
Create Date: 2026-10-19 09:12:44.118302

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a3f19c0e7b21'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create clients, tools, orders, equipment, quotes and pending authorizations."""
    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_name', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_clients_id', 'clients', ['id'])

    op.create_table(
        'tools',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('brand', sa.String(length=255), nullable=True),
        sa.Column('serial', sa.String(length=255), nullable=True),
        sa.Column('reference', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tools_id', 'tools', ['id'])
    op.create_index('ix_tools_client_id', 'tools', ['client_id'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sequence_number', sa.Integer(), nullable=True),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_id', 'orders', ['id'])
    op.create_index('ix_orders_sequence_number', 'orders', ['sequence_number'])
    op.create_index('ix_orders_client_id', 'orders', ['client_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    op.create_table(
        'equipment_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('tool_id', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.ForeignKeyConstraint(['tool_id'], ['tools.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_equipment_entries_id', 'equipment_entries', ['id'])
    op.create_index('ix_equipment_entries_order_id', 'equipment_entries', ['order_id'])
    op.create_index('ix_equipment_entries_status', 'equipment_entries', ['status'])

    op.create_table(
        'equipment_status_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('equipment_entry_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('changed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['equipment_entry_id'], ['equipment_entries.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_equipment_status_log_id', 'equipment_status_log', ['id'])
    op.create_index('ix_equipment_status_log_entry_id', 'equipment_status_log', ['equipment_entry_id', 'id'])

    op.create_table(
        'pending_authorizations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('state', sa.String(length=40), nullable=False),
        sa.Column('equipment_ids', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('phone'),
    )
    op.create_index('ix_pending_authorizations_id', 'pending_authorizations', ['id'])
    op.create_index('ix_pending_authorizations_order_id', 'pending_authorizations', ['order_id'])

    op.create_table(
        'quote_headers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('subtotal', sa.Float(), nullable=False),
        sa.Column('tax', sa.Float(), nullable=False),
        sa.Column('total', sa.Float(), nullable=False),
        sa.Column('message_text', sa.Text(), nullable=True),
        sa.Column('whatsapp_sent', sa.Boolean(), nullable=False),
        sa.Column('whatsapp_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id'),
    )
    op.create_index('ix_quote_headers_id', 'quote_headers', ['id'])

    op.create_table(
        'equipment_quotes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('equipment_entry_id', sa.Integer(), nullable=False),
        sa.Column('labor_cost', sa.Float(), nullable=False),
        sa.Column('work_description', sa.Text(), nullable=True),
        sa.Column('subtotal', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['equipment_entry_id'], ['equipment_entries.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('equipment_entry_id'),
    )
    op.create_index('ix_equipment_quotes_id', 'equipment_quotes', ['id'])

    op.create_table(
        'quote_line_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('equipment_entry_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Float(), nullable=False),
        sa.Column('subtotal', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['equipment_entry_id'], ['equipment_entries.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_quote_line_items_id', 'quote_line_items', ['id'])
    op.create_index('ix_quote_line_items_equipment_entry_id', 'quote_line_items', ['equipment_entry_id'])


def downgrade() -> None:
    """Drop the toolshop schema."""
    op.drop_table('quote_line_items')
    op.drop_table('equipment_quotes')
    op.drop_table('quote_headers')
    op.drop_table('pending_authorizations')
    op.drop_table('equipment_status_log')
    op.drop_table('equipment_entries')
    op.drop_table('orders')
    op.drop_table('tools')
    op.drop_table('clients')
