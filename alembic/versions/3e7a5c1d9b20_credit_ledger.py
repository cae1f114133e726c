"""credit ledger

Revision ID: 3e7a5c1d9b20
Revises:
Create Date: 2026-10-18 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3e7a5c1d9b20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    packages = op.create_table(
        'credit_packages',
        sa.Column('id', sa.String(length=64), primary_key=True, nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.String(length=512), nullable=True),
        sa.Column('credits', sa.Integer(), nullable=False),
        sa.Column('price_cents', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )

    op.create_table(
        'user_credits',
        sa.Column('user_id', sa.String(length=64), primary_key=True, nullable=False),
        sa.Column('available_credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_credits_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_credits_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('available_credits >= 0', name='ck_user_credits_available_non_negative'),
    )

    op.create_table(
        'credit_transactions',
        sa.Column('id', sa.String(length=36), primary_key=True, nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.String(length=512), nullable=True),
        sa.Column('package_id', sa.String(length=64), sa.ForeignKey('credit_packages.id'), nullable=True),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('external_reference', sa.String(length=255), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('external_reference', name='uq_credit_transactions_external_reference'),
    )
    op.create_index('ix_credit_transactions_user_id', 'credit_transactions', ['user_id'])
    op.create_index('ix_credit_transactions_user_created', 'credit_transactions', ['user_id', 'created_at'])
    op.create_index('ix_credit_transactions_type_external', 'credit_transactions', ['type', 'external_reference'])
    op.create_index('ix_credit_transactions_user_reference', 'credit_transactions', ['user_id', 'reference'])
    op.create_index(
        'uq_credit_transactions_open_reservation',
        'credit_transactions',
        ['user_id', 'reference'],
        unique=True,
        sqlite_where=sa.text("type = 'reservation'"),
        postgresql_where=sa.text("type = 'reservation'"),
    )

    # Default catalog
    op.bulk_insert(
        packages,
        [
            {'id': 'starter', 'name': 'Starter Pack', 'description': 'Perfect for trying out the platform',
             'credits': 50, 'price_cents': 999, 'is_active': True},
            {'id': 'professional', 'name': 'Professional Pack', 'description': 'Most popular choice for regular users',
             'credits': 150, 'price_cents': 2499, 'is_active': True},
            {'id': 'enterprise', 'name': 'Enterprise Pack', 'description': 'Best value for heavy users',
             'credits': 500, 'price_cents': 7999, 'is_active': True},
        ],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('uq_credit_transactions_open_reservation', table_name='credit_transactions')
    op.drop_index('ix_credit_transactions_user_reference', table_name='credit_transactions')
    op.drop_index('ix_credit_transactions_type_external', table_name='credit_transactions')
    op.drop_index('ix_credit_transactions_user_created', table_name='credit_transactions')
    op.drop_index('ix_credit_transactions_user_id', table_name='credit_transactions')
    op.drop_table('credit_transactions')
    op.drop_table('user_credits')
    op.drop_table('credit_packages')
