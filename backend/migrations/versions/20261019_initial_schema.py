"""Initial schema: users, sessions, quotations, selections, payments, shipping

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. users and session_tokens (bearer auth)
2. quotations with three flattened price-option slots
3. user_selections, unique per (quotation, user)
4. payments and payment_quotations (quotations covered by a payment)
5. shipping and shipping_receivers
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def _price_option_columns(slot: int):
    return [
        sa.Column(f'title_option{slot}', sa.String(length=255), nullable=True),
        sa.Column(f'total_price_option{slot}', sa.Numeric(12, 2), nullable=True),
        sa.Column(f'delivery_time_option{slot}', sa.String(length=64), nullable=True),
        sa.Column(f'description_option{slot}', sa.Text(), nullable=True),
        sa.Column(f'image_option{slot}', sa.Text(), nullable=True),
    ]


def upgrade():
    # ==========================================================================
    # 1. USERS / SESSIONS
    # ==========================================================================
    op.create_table('users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('country', sa.String(length=128), nullable=True),
        sa.Column('city', sa.String(length=128), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='customer'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index('ix_users_email', ['email'], unique=False)

    op.create_table('session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_session_tokens_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_session_tokens'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('session_tokens', schema=None) as batch_op:
        batch_op.create_index('ix_session_tokens_user_id', ['user_id'], unique=False)
        batch_op.create_index('ix_session_tokens_token_hash', ['token_hash'], unique=True)
        batch_op.create_index('ix_session_tokens_expires_at', ['expires_at'], unique=False)
        batch_op.create_index('ix_session_tokens_is_revoked', ['is_revoked'], unique=False)
        batch_op.create_index('ix_session_tokens_user_active', ['user_id', 'is_revoked'], unique=False)

    # ==========================================================================
    # 2. QUOTATIONS
    # ==========================================================================
    op.create_table('quotations',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('quotation_id', sa.String(length=32), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('alibaba_url', sa.Text(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('destination_country', sa.String(length=128), nullable=False),
        sa.Column('destination_city', sa.String(length=128), nullable=False),
        sa.Column('shipping_method', sa.String(length=64), nullable=False),
        sa.Column('service_type', sa.String(length=64), nullable=False),
        sa.Column('image_url', sa.Text(), nullable=True),
        sa.Column('image_urls', sa.JSON(), nullable=True),
        sa.Column('product_images', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Pending'),
        *_price_option_columns(1),
        *_price_option_columns(2),
        *_price_option_columns(3),
        sa.Column('selected_option', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_quotations_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_quotations'),
        sa.UniqueConstraint('quotation_id', name='uq_quotations_quotation_id'),
    )
    with op.batch_alter_table('quotations', schema=None) as batch_op:
        batch_op.create_index('ix_quotations_user_id', ['user_id'], unique=False)
        batch_op.create_index('ix_quotations_status', ['status'], unique=False)
        batch_op.create_index('ix_quotations_user_status_created', ['user_id', 'status', 'created_at'], unique=False)

    # ==========================================================================
    # 3. USER SELECTIONS
    # ==========================================================================
    op.create_table('user_selections',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quotation_id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('option_id', sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['quotation_id'], ['quotations.id'], name='fk_user_selections_quotation_id_quotations'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_user_selections_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_user_selections'),
        sa.UniqueConstraint('quotation_id', 'user_id', name='uq_user_selections_quotation_user'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('user_selections', schema=None) as batch_op:
        batch_op.create_index('ix_user_selections_quotation_id', ['quotation_id'], unique=False)
        batch_op.create_index('ix_user_selections_user_id', ['user_id'], unique=False)

    # ==========================================================================
    # 4. PAYMENTS
    # ==========================================================================
    op.create_table('payments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='PENDING'),
        sa.Column('reference_number', sa.String(length=64), nullable=False),
        sa.Column('proof_url', sa.Text(), nullable=True),
        sa.Column('proof_path', sa.String(length=512), nullable=True),
        sa.Column('failure_reason', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_payments_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_payments'),
        sa.UniqueConstraint('reference_number', name='uq_payments_reference_number'),
    )
    with op.batch_alter_table('payments', schema=None) as batch_op:
        batch_op.create_index('ix_payments_user_id', ['user_id'], unique=False)
        batch_op.create_index('ix_payments_status', ['status'], unique=False)
        batch_op.create_index('ix_payments_created_at', ['created_at'], unique=False)
        batch_op.create_index('ix_payments_user_created', ['user_id', 'created_at'], unique=False)

    op.create_table('payment_quotations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('payment_id', sa.String(length=36), nullable=False),
        sa.Column('quotation_id', sa.String(length=36), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('selected_option', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['payment_id'], ['payments.id'], name='fk_payment_quotations_payment_id_payments'),
        sa.ForeignKeyConstraint(['quotation_id'], ['quotations.id'], name='fk_payment_quotations_quotation_id_quotations'),
        sa.PrimaryKeyConstraint('id', name='pk_payment_quotations'),
        sa.UniqueConstraint('payment_id', 'quotation_id', name='uq_payment_quotations_pair'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('payment_quotations', schema=None) as batch_op:
        batch_op.create_index('ix_payment_quotations_payment_id', ['payment_id'], unique=False)
        batch_op.create_index('ix_payment_quotations_quotation_id', ['quotation_id'], unique=False)

    # ==========================================================================
    # 5. SHIPPING
    # ==========================================================================
    op.create_table('shipping',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('quotation_id', sa.String(length=36), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('tracking_number', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='waiting'),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('media_urls', sa.JSON(), nullable=True),
        sa.Column('estimated_delivery', sa.DateTime(timezone=True), nullable=True),
        sa.Column('receiver_name', sa.String(length=255), nullable=True),
        sa.Column('receiver_phone', sa.String(length=64), nullable=True),
        sa.Column('receiver_address', sa.Text(), nullable=True),
        sa.Column('receiver_email', sa.String(length=255), nullable=True),
        sa.Column('receiver_city', sa.String(length=128), nullable=True),
        sa.Column('receiver_country', sa.String(length=128), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['quotation_id'], ['quotations.id'], name='fk_shipping_quotation_id_quotations'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_shipping_user_id_users'),
        sa.PrimaryKeyConstraint('id', name='pk_shipping'),
    )
    with op.batch_alter_table('shipping', schema=None) as batch_op:
        batch_op.create_index('ix_shipping_quotation_id', ['quotation_id'], unique=False)
        batch_op.create_index('ix_shipping_user_id', ['user_id'], unique=False)
        batch_op.create_index('ix_shipping_tracking_number', ['tracking_number'], unique=False)
        batch_op.create_index('ix_shipping_status', ['status'], unique=False)
        batch_op.create_index('ix_shipping_created_at', ['created_at'], unique=False)
        batch_op.create_index('ix_shipping_user_status', ['user_id', 'status'], unique=False)

    op.create_table('shipping_receivers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('shipment_id', sa.String(length=36), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=64), nullable=False),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=128), nullable=True),
        sa.Column('country', sa.String(length=128), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_shipping_receivers_user_id_users'),
        sa.ForeignKeyConstraint(['shipment_id'], ['shipping.id'], name='fk_shipping_receivers_shipment_id_shipping'),
        sa.PrimaryKeyConstraint('id', name='pk_shipping_receivers'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('shipping_receivers', schema=None) as batch_op:
        batch_op.create_index('ix_shipping_receivers_user_id', ['user_id'], unique=False)
        batch_op.create_index('ix_shipping_receivers_shipment_id', ['shipment_id'], unique=False)
        batch_op.create_index('ix_shipping_receivers_user_default', ['user_id', 'is_default'], unique=False)


def downgrade():
    op.drop_table('shipping_receivers')
    op.drop_table('shipping')
    op.drop_table('payment_quotations')
    op.drop_table('payments')
    op.drop_table('user_selections')
    op.drop_table('quotations')
    op.drop_table('session_tokens')
    op.drop_table('users')
