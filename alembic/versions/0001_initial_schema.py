"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_initial_schema'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('companies',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('license_number', sa.String(length=100), nullable=False),
    sa.Column('registration_number', sa.String(length=100), nullable=True),
    sa.Column('contact_email', sa.String(length=255), nullable=True),
    sa.Column('contact_phone', sa.String(length=50), nullable=True),
    sa.Column('address', sa.Text(), nullable=True),
    sa.Column('registration_status', sa.String(length=20), nullable=False, comment='pending | approved | suspended | expired'),
    sa.Column('suspension_reason', sa.Text(), nullable=True),
    sa.Column('suspension_duration', sa.Integer(), nullable=True, comment='Suspension length in days'),
    sa.Column('suspended_at', sa.TIMESTAMP(timezone=True), nullable=True),
    sa.Column('registration_expiry', sa.TIMESTAMP(timezone=True), nullable=True),
    sa.Column('admin_approved_by', sa.Integer(), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('license_number')
    )
    op.create_table('users',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('username', sa.String(length=100), nullable=False),
    sa.Column('email', sa.String(length=255), nullable=False),
    sa.Column('full_name', sa.String(length=255), nullable=True),
    sa.Column('role', sa.String(length=20), nullable=False, comment='admin | officer | company | cbl | insurer | insured'),
    sa.Column('company_id', sa.Integer(), nullable=True),
    sa.Column('cbl_id', sa.String(length=100), nullable=True),
    sa.Column('insurer_id', sa.String(length=100), nullable=True),
    sa.Column('insured_id', sa.String(length=100), nullable=True),
    sa.Column('policy_numbers', sa.JSON(), nullable=True),
    sa.Column('approval_status', sa.String(length=20), nullable=False),
    sa.Column('decline_reason', sa.Text(), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email'),
    sa.UniqueConstraint('username')
    )
    op.create_table('policies',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('policy_number', sa.String(length=100), nullable=False),
    sa.Column('holder_name', sa.String(length=255), nullable=False),
    sa.Column('holder_id_number', sa.String(length=100), nullable=False),
    sa.Column('holder_phone', sa.String(length=50), nullable=True),
    sa.Column('holder_email', sa.String(length=255), nullable=True),
    sa.Column('company_id', sa.Integer(), nullable=False),
    sa.Column('policy_type', sa.String(length=100), nullable=False),
    sa.Column('coverage_type', sa.String(length=20), nullable=True, comment='treaty | facultative | co_insured'),
    sa.Column('reinsurance_number', sa.String(length=100), nullable=True),
    sa.Column('coverage_amount', sa.Numeric(precision=15, scale=2), nullable=True),
    sa.Column('premium_amount', sa.Numeric(precision=15, scale=2), nullable=True),
    sa.Column('start_date', sa.Date(), nullable=False),
    sa.Column('expiry_date', sa.Date(), nullable=False),
    sa.Column('approval_status', sa.String(length=20), nullable=False, comment='pending | approved | declined'),
    sa.Column('approval_date', sa.TIMESTAMP(timezone=True), nullable=True),
    sa.Column('approver_id', sa.Integer(), nullable=True),
    sa.Column('decline_reason', sa.Text(), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('policy_year', sa.Integer(), nullable=True),
    sa.Column('policy_counter', sa.Integer(), nullable=True),
    sa.Column('hash', sa.String(length=64), nullable=False, comment='SHA-256 of number, holder, expiry and company'),
    sa.Column('created_by', sa.Integer(), nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('hash'),
    sa.UniqueConstraint('policy_number')
    )
    op.create_index(op.f('ix_policies_company_id'), 'policies', ['company_id'], unique=False)
    op.create_table('policy_counters',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('company_id', sa.Integer(), nullable=False),
    sa.Column('year', sa.Integer(), nullable=False),
    sa.Column('counter', sa.Integer(), nullable=False),
    sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('company_id', 'year', name='uq_policy_counters_company_year')
    )
    op.create_table('verifications',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('policy_number', sa.String(length=100), nullable=False),
    sa.Column('holder_name', sa.String(length=255), nullable=True),
    sa.Column('company_id', sa.Integer(), nullable=True, comment='Queried company as supplied'),
    sa.Column('policy_id', sa.Integer(), nullable=True),
    sa.Column('officer_id', sa.Integer(), nullable=True),
    sa.Column('status', sa.String(length=20), nullable=False, comment='valid | expired | fake | not_found | pending'),
    sa.Column('reason', sa.Text(), nullable=False),
    sa.Column('confidence_score', sa.Float(), nullable=False),
    sa.Column('verification_method', sa.String(length=20), nullable=False, comment='manual | qr_scan | api'),
    sa.Column('location', sa.String(length=255), nullable=True),
    sa.Column('latitude', sa.Float(), nullable=True),
    sa.Column('longitude', sa.Float(), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('response_time_ms', sa.Integer(), nullable=False),
    sa.Column('verified_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['officer_id'], ['users.id']),
    sa.ForeignKeyConstraint(['policy_id'], ['policies.id']),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_verifications_company_id'), 'verifications', ['company_id'], unique=False)
    op.create_index(op.f('ix_verifications_officer_id'), 'verifications', ['officer_id'], unique=False)
    op.create_index(op.f('ix_verifications_policy_number'), 'verifications', ['policy_number'], unique=False)
    op.create_table('claims',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('policy_id', sa.Integer(), nullable=False),
    sa.Column('insured_id', sa.Integer(), nullable=True),
    sa.Column('insurer_id', sa.Integer(), nullable=False),
    sa.Column('description', sa.Text(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False, comment='reported | settled | denied'),
    sa.Column('reason', sa.Text(), nullable=True),
    sa.Column('settlement_amount', sa.Numeric(precision=15, scale=2), nullable=True),
    sa.Column('insurance_type', sa.String(length=100), nullable=True),
    sa.Column('attachment_url', sa.String(length=500), nullable=True),
    sa.Column('uploads', sa.JSON(), nullable=True),
    sa.Column('previous_claim_id', sa.Integer(), nullable=True),
    sa.Column('decided_by', sa.Integer(), nullable=True),
    sa.Column('decided_at', sa.TIMESTAMP(timezone=True), nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['insured_id'], ['users.id']),
    sa.ForeignKeyConstraint(['insurer_id'], ['companies.id']),
    sa.ForeignKeyConstraint(['policy_id'], ['policies.id']),
    sa.ForeignKeyConstraint(['previous_claim_id'], ['claims.id']),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_claims_insurer_id'), 'claims', ['insurer_id'], unique=False)
    op.create_index(op.f('ix_claims_policy_id'), 'claims', ['policy_id'], unique=False)
    op.create_table('approvals',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('entity_type', sa.String(length=20), nullable=False, comment='insurer | policy | user | bond | type'),
    sa.Column('entity_id', sa.Integer(), nullable=False),
    sa.Column('status', sa.String(length=20), nullable=False, comment='pending | approved | declined'),
    sa.Column('requested_by', sa.Integer(), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('approver_id', sa.Integer(), nullable=True),
    sa.Column('reason', sa.Text(), nullable=True),
    sa.Column('decided_at', sa.TIMESTAMP(timezone=True), nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_approvals_entity', 'approvals', ['entity_type', 'entity_id'], unique=False)
    op.create_index(
        'uq_approvals_pending_entity',
        'approvals',
        ['entity_type', 'entity_id'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )
    op.create_table('bonds',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('policy_id', sa.Integer(), nullable=True),
    sa.Column('company_id', sa.Integer(), nullable=True),
    sa.Column('bond_type', sa.String(length=100), nullable=False),
    sa.Column('value', sa.Numeric(precision=15, scale=2), nullable=False),
    sa.Column('approval_status', sa.String(length=20), nullable=False),
    sa.Column('decline_reason', sa.Text(), nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
    sa.ForeignKeyConstraint(['policy_id'], ['policies.id']),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_table('insurance_types',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('code', sa.String(length=50), nullable=False),
    sa.Column('name', sa.String(length=255), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('company_id', sa.Integer(), nullable=True),
    sa.Column('approval_status', sa.String(length=20), nullable=False),
    sa.Column('decline_reason', sa.Text(), nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.ForeignKeyConstraint(['company_id'], ['companies.id']),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('code')
    )
    op.create_table('audit_logs',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('user_id', sa.Integer(), nullable=True),
    sa.Column('action', sa.String(length=100), nullable=False),
    sa.Column('entity_type', sa.String(length=50), nullable=False),
    sa.Column('entity_id', sa.Integer(), nullable=True),
    sa.Column('details', sa.JSON(), nullable=True),
    sa.Column('ip_address', sa.String(length=64), nullable=True),
    sa.Column('user_agent', sa.String(length=500), nullable=True),
    sa.Column('severity', sa.String(length=20), nullable=False, comment='low | medium | high | critical'),
    sa.Column('status', sa.String(length=20), nullable=False, comment='success | failure'),
    sa.Column('error_message', sa.Text(), nullable=True),
    sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_action'), 'audit_logs', ['action'], unique=False)
    op.create_index(op.f('ix_audit_logs_user_id'), 'audit_logs', ['user_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_audit_logs_user_id'), table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_action'), table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_table('insurance_types')
    op.drop_table('bonds')
    op.drop_index('uq_approvals_pending_entity', table_name='approvals')
    op.drop_index('ix_approvals_entity', table_name='approvals')
    op.drop_table('approvals')
    op.drop_index(op.f('ix_claims_policy_id'), table_name='claims')
    op.drop_index(op.f('ix_claims_insurer_id'), table_name='claims')
    op.drop_table('claims')
    op.drop_index(op.f('ix_verifications_policy_number'), table_name='verifications')
    op.drop_index(op.f('ix_verifications_officer_id'), table_name='verifications')
    op.drop_index(op.f('ix_verifications_company_id'), table_name='verifications')
    op.drop_table('verifications')
    op.drop_table('policy_counters')
    op.drop_index(op.f('ix_policies_company_id'), table_name='policies')
    op.drop_table('policies')
    op.drop_table('users')
    op.drop_table('companies')
