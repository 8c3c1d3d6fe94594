"""Settlement core schema

Revision ID: 001_settlement_core
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_settlement_core'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('emp_code', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('role', sa.String(), nullable=False, server_default='EMPLOYEE'),
        sa.Column('reporting_manager_id', sa.Integer(), nullable=True),
        sa.Column('employment_type', sa.String(), nullable=False, server_default='monthly'),
        sa.Column('base_salary', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('hourly_rate', sa.Numeric(10, 2), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['reporting_manager_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_employees_id'), 'employees', ['id'], unique=False)
    op.create_index(op.f('ix_employees_emp_code'), 'employees', ['emp_code'], unique=True)
    op.create_index(op.f('ix_employees_reporting_manager_id'), 'employees', ['reporting_manager_id'], unique=False)

    op.create_table(
        'approval_settings_versions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('rules_json', sa.JSON(), nullable=False),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.ForeignKeyConstraint(['created_by_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_approval_settings_versions_id'), 'approval_settings_versions', ['id'], unique=False)
    op.create_index(op.f('ix_approval_settings_versions_version'), 'approval_settings_versions', ['version'], unique=True)

    op.create_table(
        'approval_delegations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('delegator_id', sa.Integer(), nullable=False),
        sa.Column('delegate_id', sa.Integer(), nullable=False),
        sa.Column('active_from', sa.Date(), nullable=False),
        sa.Column('active_to', sa.Date(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('ended_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('ended_by_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['delegator_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['delegate_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['created_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['ended_by_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('active_from <= active_to', name='check_delegation_from_le_to')
    )
    op.create_index(op.f('ix_approval_delegations_id'), 'approval_delegations', ['id'], unique=False)
    op.create_index(op.f('ix_approval_delegations_delegator_id'), 'approval_delegations', ['delegator_id'], unique=False)
    op.create_index(op.f('ix_approval_delegations_delegate_id'), 'approval_delegations', ['delegate_id'], unique=False)
    op.create_index(
        'ix_approval_delegations_delegator_dates', 'approval_delegations',
        ['delegator_id', 'active_from', 'active_to'], unique=False,
    )

    op.create_table(
        'approval_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_type', sa.String(), nullable=False),
        sa.Column('requester_id', sa.Integer(), nullable=False),
        sa.Column('payload_json', sa.JSON(), nullable=False),
        sa.Column('settings_version', sa.Integer(), nullable=False),
        sa.Column('final_status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('auto_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('override_status', sa.String(), nullable=True),
        sa.Column('override_reason', sa.Text(), nullable=True),
        sa.Column('override_by_id', sa.Integer(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_by_id', sa.Integer(), nullable=True),
        sa.Column('effect_applied', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('effect_reversed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('escalated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('escalated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['requester_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['override_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['cancelled_by_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_approval_requests_id'), 'approval_requests', ['id'], unique=False)
    op.create_index(op.f('ix_approval_requests_request_type'), 'approval_requests', ['request_type'], unique=False)
    op.create_index(op.f('ix_approval_requests_requester_id'), 'approval_requests', ['requester_id'], unique=False)
    op.create_index(op.f('ix_approval_requests_final_status'), 'approval_requests', ['final_status'], unique=False)

    op.create_table(
        'approval_steps',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('approver_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('acted_by_id', sa.Integer(), nullable=True),
        sa.Column('delegation_id', sa.Integer(), nullable=True),
        sa.Column('acted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['request_id'], ['approval_requests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['approver_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['acted_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['delegation_id'], ['approval_delegations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('request_id', 'level', name='uq_approval_steps_request_level'),
        sa.CheckConstraint('level >= 1', name='check_approval_step_level_positive')
    )
    op.create_index(op.f('ix_approval_steps_id'), 'approval_steps', ['id'], unique=False)
    op.create_index(op.f('ix_approval_steps_request_id'), 'approval_steps', ['request_id'], unique=False)
    op.create_index(op.f('ix_approval_steps_approver_id'), 'approval_steps', ['approver_id'], unique=False)
    op.create_index('ix_approval_steps_approver_status', 'approval_steps', ['approver_id', 'status'], unique=False)

    op.create_table(
        'leave_balances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('annual_balance', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('sick_balance', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('emergency_balance', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('unpaid_taken', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('annual_balance >= 0', name='check_annual_balance_non_negative'),
        sa.CheckConstraint('sick_balance >= 0', name='check_sick_balance_non_negative'),
        sa.CheckConstraint('emergency_balance >= 0', name='check_emergency_balance_non_negative'),
        sa.CheckConstraint('unpaid_taken >= 0', name='check_unpaid_taken_non_negative')
    )
    op.create_index(op.f('ix_leave_balances_id'), 'leave_balances', ['id'], unique=False)
    op.create_index(op.f('ix_leave_balances_employee_id'), 'leave_balances', ['employee_id'], unique=True)

    op.create_table(
        'leave_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=True),
        sa.Column('leave_type', sa.String(), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('delta_days', sa.Numeric(6, 2), nullable=False),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('action_by_employee_id', sa.Integer(), nullable=True),
        sa.Column('action_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['request_id'], ['approval_requests.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['action_by_employee_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_leave_transactions_id'), 'leave_transactions', ['id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_employee_id'), 'leave_transactions', ['employee_id'], unique=False)
    op.create_index(op.f('ix_leave_transactions_request_id'), 'leave_transactions', ['request_id'], unique=False)

    op.create_table(
        'loans',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=True),
        sa.Column('loan_type', sa.String(), nullable=False, server_default='installment'),
        sa.Column('loan_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('installment_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_installments', sa.Integer(), nullable=False),
        sa.Column('remaining_installments', sa.Integer(), nullable=False),
        sa.Column('start_month', sa.String(length=7), nullable=False),
        sa.Column('disbursed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('disbursed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('disbursed_by_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['request_id'], ['approval_requests.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['disbursed_by_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('request_id'),
        sa.CheckConstraint('remaining_installments >= 0', name='check_loan_remaining_non_negative'),
        sa.CheckConstraint('remaining_installments <= total_installments', name='check_loan_remaining_le_total'),
        sa.CheckConstraint('total_installments >= 1', name='check_loan_total_positive')
    )
    op.create_index(op.f('ix_loans_id'), 'loans', ['id'], unique=False)
    op.create_index(op.f('ix_loans_employee_id'), 'loans', ['employee_id'], unique=False)
    op.create_index(op.f('ix_loans_status'), 'loans', ['status'], unique=False)

    op.create_table(
        'loan_installments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('loan_id', sa.Integer(), nullable=False),
        sa.Column('month_key', sa.String(length=7), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('consumed_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['loan_id'], ['loans.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('loan_id', 'month_key', name='uq_loan_installments_loan_month')
    )
    op.create_index(op.f('ix_loan_installments_id'), 'loan_installments', ['id'], unique=False)
    op.create_index(op.f('ix_loan_installments_loan_id'), 'loan_installments', ['loan_id'], unique=False)

    for table in ('employee_allowances', 'employee_deductions'):
        extra = []
        if table == 'employee_deductions':
            extra = [
                sa.Column('category', sa.String(), nullable=False, server_default='custom'),
                sa.Column('reason', sa.Text(), nullable=True),
            ]
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('employee_id', sa.Integer(), nullable=False),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('amount', sa.Numeric(12, 2), nullable=False),
            sa.Column('is_recurring', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('start_month', sa.String(length=7), nullable=False),
            sa.Column('end_month', sa.String(length=7), nullable=True),
            sa.Column('status', sa.String(), nullable=False, server_default='active'),
            *extra,
            sa.Column('source_request_id', sa.Integer(), nullable=True),
            sa.Column('created_by_id', sa.Integer(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
            sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
            sa.ForeignKeyConstraint(['source_request_id'], ['approval_requests.id'], ondelete='SET NULL'),
            sa.ForeignKeyConstraint(['created_by_id'], ['employees.id'], ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f(f'ix_{table}_id'), table, ['id'], unique=False)
        op.create_index(op.f(f'ix_{table}_employee_id'), table, ['employee_id'], unique=False)
        op.create_index(f'ix_{table}_employee_month', table, ['employee_id', 'start_month'], unique=False)

    op.create_table(
        'payroll_months',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('month_key', sa.String(length=7), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='draft'),
        sa.Column('generated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('generated_by_id', sa.Integer(), nullable=True),
        sa.Column('finalized_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finalized_by_id', sa.Integer(), nullable=True),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('locked_by_id', sa.Integer(), nullable=True),
        sa.Column('reopen_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['generated_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['finalized_by_id'], ['employees.id'], ),
        sa.ForeignKeyConstraint(['locked_by_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_payroll_months_id'), 'payroll_months', ['id'], unique=False)
    op.create_index(op.f('ix_payroll_months_month_key'), 'payroll_months', ['month_key'], unique=True)

    op.create_table(
        'payroll_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('payroll_month_id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('employment_type', sa.String(), nullable=False),
        sa.Column('base_salary', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_allowances', sa.Numeric(12, 2), nullable=False),
        sa.Column('custom_deductions', sa.Numeric(12, 2), nullable=False),
        sa.Column('loan_installments', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_deductions', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_hours', sa.Numeric(8, 2), nullable=False, server_default='0'),
        sa.Column('unpaid_leave_days', sa.Numeric(6, 2), nullable=False, server_default='0'),
        sa.Column('estimated_net', sa.Numeric(12, 2), nullable=False),
        sa.Column('breakdown_json', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['payroll_month_id'], ['payroll_months.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payroll_month_id', 'employee_id', name='uq_payroll_records_month_employee')
    )
    op.create_index(op.f('ix_payroll_records_id'), 'payroll_records', ['id'], unique=False)
    op.create_index(op.f('ix_payroll_records_payroll_month_id'), 'payroll_records', ['payroll_month_id'], unique=False)
    op.create_index(op.f('ix_payroll_records_employee_id'), 'payroll_records', ['employee_id'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entity_type', sa.String(), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('before_state', sa.JSON(), nullable=True),
        sa.Column('after_state', sa.JSON(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('meta_json', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['actor_id'], ['employees.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_id'), 'audit_logs', ['id'], unique=False)
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'], unique=False)


def downgrade() -> None:
    for table in (
        'audit_logs',
        'payroll_records',
        'payroll_months',
        'employee_deductions',
        'employee_allowances',
        'loan_installments',
        'loans',
        'leave_transactions',
        'leave_balances',
        'approval_steps',
        'approval_requests',
        'approval_delegations',
        'approval_settings_versions',
        'employees',
    ):
        op.drop_table(table)
