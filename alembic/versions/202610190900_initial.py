"""initial ledger schema

Revision ID: 202610190900
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa


revision = "202610190900"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(14, 2)
TRANSACTION_TYPE = sa.Enum("income", "expense", "transfer", name="transactiontype")


def upgrade():
    op.create_table(
        "recurring_series",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column(
            "frequency",
            sa.Enum(
                "once", "weekly", "biweekly", "monthly", "yearly", name="frequency"
            ),
            nullable=False,
        ),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("to_account_id", sa.String(length=64)),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date()),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("day_of_month", sa.Integer()),
        sa.Column("month_of_year", sa.Integer()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "auto_execute", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column("is_paused", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("pause_until", sa.Date()),
        sa.Column("last_executed_date", sa.Date()),
        sa.Column("total_executions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "failed_executions", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("transaction_ids", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_series_amount_positive"),
        sa.CheckConstraint("due_date >= start_date", name="ck_series_due_after_start"),
        sa.CheckConstraint(
            "day_of_month BETWEEN 1 AND 31", name="ck_series_day_of_month"
        ),
        sa.CheckConstraint(
            "month_of_year BETWEEN 1 AND 12", name="ck_series_month_of_year"
        ),
    )
    op.create_index(
        "ix_series_user_active_due",
        "recurring_series",
        ["user_id", "is_active", "due_date"],
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("account_id", sa.String(length=64), nullable=False),
        sa.Column("to_account_id", sa.String(length=64)),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("type", TRANSACTION_TYPE, nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column(
            "is_reconciled", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column(
            "linked_transaction_id",
            sa.String(length=36),
            sa.ForeignKey("transactions.id"),
        ),
        sa.Column("residual_amount", MONEY),
        sa.Column(
            "recurring_series_id",
            sa.String(length=36),
            sa.ForeignKey("recurring_series.id"),
        ),
        sa.Column("occurrence_date", sa.Date()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "user_id",
            "recurring_series_id",
            "occurrence_date",
            name="uq_txn_series_occurrence",
        ),
        sa.CheckConstraint("amount >= 0", name="ck_transactions_amount_positive"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "date"])
    op.create_index(
        "ix_transactions_linked", "transactions", ["linked_transaction_id"]
    )

    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("description", sa.String(length=120), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column(
            "period",
            sa.Enum("monthly", "annually", name="budgetperiodicity"),
            nullable=False,
        ),
        sa.Column("categories", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount > 0", name="ck_budget_amount_positive"),
    )

    op.create_table(
        "budget_periods",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("total_spent", MONEY),
        sa.Column("total_saved", MONEY),
        sa.Column("category_spending", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_budget_period_user_active", "budget_periods", ["user_id", "is_active"]
    )


def downgrade():
    op.drop_index("ix_budget_period_user_active", table_name="budget_periods")
    op.drop_table("budget_periods")
    op.drop_table("budgets")
    op.drop_index("ix_transactions_linked", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_series_user_active_due", table_name="recurring_series")
    op.drop_table("recurring_series")
