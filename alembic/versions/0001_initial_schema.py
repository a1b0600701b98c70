"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def _money(name, nullable=False, default=True):
    return sa.Column(
        name,
        sa.Numeric(10, 2),
        nullable=nullable,
        server_default="0.00" if default else None,
    )


def upgrade():
    op.create_table(
        "user",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("date_joined", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    op.create_table(
        "user_role",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("assigned_by", sa.Uuid(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("assigned_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("user_id", "role", name="uq_user_role_user_id_role"),
    )
    op.create_index("ix_user_role_user_id", "user_role", ["user_id"])

    op.create_table(
        "member",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("member_number", sa.String(20), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("national_id", sa.String(50), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("date_joined", sa.Date(), nullable=False, server_default=sa.text("CURRENT_DATE")),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        _money("monthly_savings_target"),
        _money("total_savings"),
        _money("total_loans"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_member_member_number", "member", ["member_number"], unique=True)
    op.create_index("ix_member_user_id", "member", ["user_id"], unique=True)

    op.create_table(
        "member_status_history",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("member_id", sa.Uuid(), sa.ForeignKey("member.id"), nullable=False),
        sa.Column("old_status", sa.String(20), nullable=True),
        sa.Column("new_status", sa.String(20), nullable=False),
        sa.Column("changed_by", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("changed_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("reason", sa.Text(), nullable=True),
    )
    op.create_index("ix_member_status_history_member_id", "member_status_history", ["member_id"])

    op.create_table(
        "savings_transaction",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("member_id", sa.Uuid(), sa.ForeignKey("member.id"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("transaction_type", sa.String(20), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False, server_default=sa.text("CURRENT_DATE")),
        sa.Column("entry_number", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("receipt_number", sa.String(100), nullable=True),
        _money("balance_after", nullable=True, default=False),
        sa.Column("recorded_by", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("member_id", "entry_number", name="uq_savings_transaction_member_entry"),
    )
    op.create_index("ix_savings_transaction_member_id", "savings_transaction", ["member_id"])

    op.create_table(
        "loan",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("loan_number", sa.String(20), nullable=False),
        sa.Column("member_id", sa.Uuid(), sa.ForeignKey("member.id"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("interest_rate", sa.Numeric(5, 2), nullable=False, server_default="10.00"),
        sa.Column("duration_months", sa.Integer(), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("application_date", sa.Date(), nullable=False, server_default=sa.text("CURRENT_DATE")),
        sa.Column("approval_date", sa.Date(), nullable=True),
        sa.Column("disbursement_date", sa.Date(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        _money("total_amount_due", nullable=True, default=False),
        _money("amount_paid"),
        _money("balance", nullable=True, default=False),
        sa.Column("approved_by", sa.Uuid(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_loan_loan_number", "loan", ["loan_number"], unique=True)
    op.create_index("ix_loan_member_id", "loan", ["member_id"])

    op.create_table(
        "loan_payment",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("loan_id", sa.Uuid(), sa.ForeignKey("loan.id"), nullable=False),
        sa.Column("amount", sa.Numeric(10, 2), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False, server_default=sa.text("CURRENT_DATE")),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default="cash"),
        sa.Column("receipt_number", sa.String(100), nullable=True),
        sa.Column("recorded_by", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index("ix_loan_payment_loan_id", "loan_payment", ["loan_id"])

    number_sequence = op.create_table(
        "number_sequence",
        sa.Column("name", sa.String(50), primary_key=True),
        sa.Column("value", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    # Seed the member counter so concurrent first registrations contend on an existing row.
    op.bulk_insert(number_sequence, [
        {"name": "member", "value": 0},
    ])


def downgrade():
    op.drop_table("number_sequence")
    op.drop_index("ix_loan_payment_loan_id", table_name="loan_payment")
    op.drop_table("loan_payment")
    op.drop_index("ix_loan_member_id", table_name="loan")
    op.drop_index("ix_loan_loan_number", table_name="loan")
    op.drop_table("loan")
    op.drop_index("ix_savings_transaction_member_id", table_name="savings_transaction")
    op.drop_table("savings_transaction")
    op.drop_index("ix_member_status_history_member_id", table_name="member_status_history")
    op.drop_table("member_status_history")
    op.drop_index("ix_member_user_id", table_name="member")
    op.drop_index("ix_member_member_number", table_name="member")
    op.drop_table("member")
    op.drop_index("ix_user_role_user_id", table_name="user_role")
    op.drop_table("user_role")
    op.drop_index("ix_user_email", table_name="user")
    op.drop_table("user")
