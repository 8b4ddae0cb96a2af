"""Create donation ledger tables

Revision ID: 20260301_000001
Revises:
Create Date: 2026-03-01

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20260301_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Wei amounts: uint256 fits in 78 decimal digits
WEI = sa.Numeric(78, 0)


def upgrade() -> None:
    # Campaigns
    op.create_table(
        'campaigns',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('image_url', sa.String(1024), nullable=True),
        sa.Column('goal_amount', WEI, nullable=False),
        sa.Column('current_amount', WEI, nullable=False, server_default='0'),
        sa.Column('receiving_wallet_address', sa.String(42), nullable=True),
        sa.Column('platform_fee_address', sa.String(42), nullable=True),
        sa.Column('platform_fee_amount', WEI, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('is_featured', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('goal_amount >= 0', name='check_campaign_goal_non_negative'),
        sa.CheckConstraint('current_amount >= 0', name='check_campaign_current_non_negative'),
        sa.CheckConstraint(
            "status IN ('active', 'inactive', 'completed')",
            name='check_campaign_status',
        ),
        sa.CheckConstraint(
            '(platform_fee_address IS NULL) = (platform_fee_amount IS NULL)',
            name='check_campaign_fee_pair',
        ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_campaigns_status', 'campaigns', ['status'])

    # Donations
    op.create_table(
        'donations',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('campaign_id', sa.String(36), nullable=True),
        sa.Column('donor_wallet', sa.String(42), nullable=False),
        sa.Column('amount', WEI, nullable=False),
        sa.Column('transaction_hash', sa.String(66), nullable=False),
        sa.Column('fee_transaction_hash', sa.String(66), nullable=True),
        sa.Column('block_number', sa.BigInteger(), nullable=True),
        sa.Column('timestamp_on_chain', sa.BigInteger(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('campaign_credited', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('donor_credited', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('amount > 0', name='check_donation_amount_positive'),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'failed')",
            name='check_donation_status',
        ),
        sa.CheckConstraint(
            "status <> 'confirmed' OR block_number IS NOT NULL",
            name='check_donation_confirmed_has_block',
        ),
        sa.ForeignKeyConstraint(['campaign_id'], ['campaigns.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_hash', name='uq_donations_transaction_hash')
    )
    op.create_index('ix_donations_campaign_id', 'donations', ['campaign_id'])
    op.create_index('ix_donations_status', 'donations', ['status'])
    op.create_index('idx_donation_donor_status', 'donations', ['donor_wallet', 'status'])

    # Users
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('auth_user_id', sa.String(64), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('wallet_address', sa.String(42), nullable=True),
        sa.Column('total_donated', WEI, nullable=False, server_default='0'),
        sa.Column('donation_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('first_donation_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_blocked', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint('total_donated >= 0', name='check_user_total_donated_non_negative'),
        sa.CheckConstraint('donation_count >= 0', name='check_user_donation_count_non_negative'),
        sa.CheckConstraint(
            'wallet_address IS NOT NULL OR auth_user_id IS NOT NULL',
            name='check_user_has_identity',
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('wallet_address', name='uq_users_wallet_address')
    )
    op.create_index('ix_users_auth_user_id', 'users', ['auth_user_id'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'])

    # Admins
    op.create_table(
        'admins',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_admins_email')
    )


def downgrade() -> None:
    op.drop_table('admins')

    op.drop_index('ix_users_email', 'users')
    op.drop_index('ix_users_auth_user_id', 'users')
    op.drop_table('users')

    op.drop_index('idx_donation_donor_status', 'donations')
    op.drop_index('ix_donations_status', 'donations')
    op.drop_index('ix_donations_campaign_id', 'donations')
    op.drop_table('donations')

    op.drop_index('ix_campaigns_status', 'campaigns')
    op.drop_table('campaigns')
