"""Add contracts and webhook delivery tables

Revision ID: 20261019_001_add_contract_signature_tables
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261019_001_add_contract_signature_tables'
down_revision = None
branch_labels = None
depends_on = None

# Enum columns store member names, matching the ORM's SAEnum mapping.
contract_status = sa.Enum(
    'UPLOADED',
    'PENDING_SIGNATURE_SETUP',
    'PENDING_SIGNATURES',
    'SIGNED',
    'REJECTED',
    'EXPIRED',
    'CANCELLED',
    'ERROR_SIGNATURE_PROVIDER',
    name='contractstatus',
)
webhook_outcome = sa.Enum(
    'APPLIED',
    'NO_CHANGE',
    'UNKNOWN_DOCUMENT',
    'STALE',
    'TERMINAL_LOCKED',
    'UNRECOGNIZED_EVENT',
    name='webhookoutcome',
)


def upgrade() -> None:
    op.create_table('contracts',
        sa.Column('id', sa.Integer(), nullable=False, primary_key=True, autoincrement=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('file_name', sa.String(length=255), nullable=False),
        sa.Column('file_reference', sa.String(length=1024), nullable=False),
        sa.Column('uploader_identity', sa.String(length=255), nullable=False),
        sa.Column('internal_status', contract_status, nullable=False),
        sa.Column('provider_document_id', sa.String(length=255), nullable=True),
        sa.Column('provider_status', sa.String(length=100), nullable=True),
        sa.Column('provider_original_url', sa.Text(), nullable=True),
        sa.Column('provider_certified_url', sa.Text(), nullable=True),
        sa.Column('provider_signature_request_id', sa.String(length=255), nullable=True),
        sa.Column('provider_event_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('signed_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('provider_document_id')
    )
    op.create_index(op.f('ix_contracts_uploader_identity'), 'contracts', ['uploader_identity'], unique=False)

    op.create_table('webhook_deliveries',
        sa.Column('id', sa.String(length=36), nullable=False, primary_key=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('provider', sa.String(length=40), nullable=False),
        sa.Column('event_type', sa.String(length=120), nullable=False),
        sa.Column('provider_document_id', sa.String(length=255), nullable=False),
        sa.Column('provider_status', sa.String(length=100), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('outcome', webhook_outcome, nullable=False),
        sa.Column('contract_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['contract_id'], ['contracts.id'], ondelete='SET NULL')
    )
    op.create_index(op.f('ix_webhook_deliveries_provider_document_id'), 'webhook_deliveries', ['provider_document_id'], unique=False)
    op.create_index(op.f('ix_webhook_deliveries_contract_id'), 'webhook_deliveries', ['contract_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_webhook_deliveries_contract_id'), table_name='webhook_deliveries')
    op.drop_index(op.f('ix_webhook_deliveries_provider_document_id'), table_name='webhook_deliveries')
    op.drop_table('webhook_deliveries')
    op.drop_index(op.f('ix_contracts_uploader_identity'), table_name='contracts')
    op.drop_table('contracts')
    webhook_outcome.drop(op.get_bind(), checkfirst=True)
    contract_status.drop(op.get_bind(), checkfirst=True)
