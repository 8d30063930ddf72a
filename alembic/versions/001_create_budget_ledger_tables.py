"""create templates, monthly budgets, budget lines and transactions

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'templates',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        *_timestamps(),
    )
    op.create_index('ix_templates_id', 'templates', ['id'], unique=False)
    op.create_index('ix_templates_user_id', 'templates', ['user_id'], unique=False)

    op.create_table(
        'template_lines',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('template_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('kind', sa.String(), nullable=False),
        sa.Column('recurrence', sa.String(), nullable=False, server_default='fixed'),
        sa.Column('description', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_foreign_key(
        'fk_template_lines_template_id',
        'template_lines',
        'templates',
        ['template_id'],
        ['id'],
        ondelete='CASCADE'
    )
    op.create_index('ix_template_lines_id', 'template_lines', ['id'], unique=False)
    op.create_index('ix_template_lines_template_id', 'template_lines', ['template_id'], unique=False)

    op.create_table(
        'monthly_budgets',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('template_id', postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column('month', sa.Integer(), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('ending_balance', sa.Numeric(precision=12, scale=2), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'year', 'month', name='uq_monthly_budgets_user_period'),
        sa.CheckConstraint('month BETWEEN 1 AND 12', name='ck_monthly_budgets_month'),
    )
    op.create_foreign_key(
        'fk_monthly_budgets_template_id',
        'monthly_budgets',
        'templates',
        ['template_id'],
        ['id'],
        ondelete='SET NULL'
    )
    op.create_index('ix_monthly_budgets_id', 'monthly_budgets', ['id'], unique=False)
    op.create_index('ix_monthly_budgets_user_id', 'monthly_budgets', ['user_id'], unique=False)
    op.create_index('ix_monthly_budgets_template_id', 'monthly_budgets', ['template_id'], unique=False)

    op.create_table(
        'budget_lines',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('budget_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('template_line_id', postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column('savings_goal_id', postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('kind', sa.String(), nullable=False),
        sa.Column('recurrence', sa.String(), nullable=False, server_default='fixed'),
        sa.Column('is_manually_adjusted', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('checked_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_foreign_key(
        'fk_budget_lines_budget_id',
        'budget_lines',
        'monthly_budgets',
        ['budget_id'],
        ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'fk_budget_lines_template_line_id',
        'budget_lines',
        'template_lines',
        ['template_line_id'],
        ['id'],
        ondelete='SET NULL'
    )
    op.create_index('ix_budget_lines_id', 'budget_lines', ['id'], unique=False)
    op.create_index('ix_budget_lines_budget_id', 'budget_lines', ['budget_id'], unique=False)
    op.create_index('ix_budget_lines_template_line_id', 'budget_lines', ['template_line_id'], unique=False)

    op.create_table(
        'transactions',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('budget_id', postgresql.UUID(as_uuid=False), nullable=False),
        sa.Column('budget_line_id', postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('kind', sa.String(), nullable=False),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('category', sa.String(), nullable=True),
        sa.Column('checked_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_foreign_key(
        'fk_transactions_budget_id',
        'transactions',
        'monthly_budgets',
        ['budget_id'],
        ['id'],
        ondelete='CASCADE'
    )
    op.create_foreign_key(
        'fk_transactions_budget_line_id',
        'transactions',
        'budget_lines',
        ['budget_line_id'],
        ['id'],
        ondelete='SET NULL'
    )
    op.create_index('ix_transactions_id', 'transactions', ['id'], unique=False)
    op.create_index('ix_transactions_budget_id', 'transactions', ['budget_id'], unique=False)
    op.create_index('ix_transactions_budget_line_id', 'transactions', ['budget_line_id'], unique=False)


def downgrade() -> None:
    op.drop_table('transactions')
    op.drop_table('budget_lines')
    op.drop_table('monthly_budgets')
    op.drop_table('template_lines')
    op.drop_table('templates')
