"""create credit ledger schema

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:01.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_000001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "user_credit",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("credit", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("credit >= 0", name="ck_user_credit_non_negative"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_user_credit_user_id"), "user_credit", ["user_id"], unique=True)

    op.create_table(
        "flux_data",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("replicate_id", sa.String(), nullable=False),
        sa.Column("model", sa.String(), nullable=False),
        sa.Column("input_prompt", sa.Text(), nullable=True),
        sa.Column("aspect_ratio", sa.String(), nullable=True),
        sa.Column("is_private", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("locale", sa.String(), nullable=True),
        sa.Column("task_status", sa.String(), nullable=False, server_default="processing"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_flux_data_user_id"), "flux_data", ["user_id"], unique=False)
    op.create_index(op.f("ix_flux_data_replicate_id"), "flux_data", ["replicate_id"], unique=True)
    op.create_index(op.f("ix_flux_data_created_at"), "flux_data", ["created_at"], unique=False)

    op.create_table(
        "user_billing",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("flux_id", sa.Integer(), nullable=True),
        sa.Column("state", sa.String(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["flux_id"], ["flux_data.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("flux_id"),
    )
    op.create_index(op.f("ix_user_billing_user_id"), "user_billing", ["user_id"], unique=False)

    op.create_table(
        "user_credit_transaction",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("credit", sa.Integer(), nullable=False),
        sa.Column("balance", sa.Integer(), nullable=False),
        sa.Column("billing_id", sa.Integer(), nullable=True),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.ForeignKeyConstraint(["billing_id"], ["user_billing.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_user_credit_transaction_user_id"), "user_credit_transaction", ["user_id"], unique=False)
    op.create_index(op.f("ix_user_credit_transaction_billing_id"), "user_credit_transaction", ["billing_id"], unique=False)
    op.create_index(op.f("ix_user_credit_transaction_created_at"), "user_credit_transaction", ["created_at"], unique=False)

    op.create_table(
        "charge_product",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("credit", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(), nullable=False, server_default="usd"),
        sa.Column("state", sa.String(), nullable=False, server_default="enable"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "charge_order",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("charge_product_id", sa.Integer(), nullable=False),
        sa.Column("phase", sa.String(), nullable=False, server_default="Pending"),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(), nullable=False, server_default="usd"),
        sa.Column("payment_intent_id", sa.String(), nullable=True),
        sa.Column("payment_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("result", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["charge_product_id"], ["charge_product.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_charge_order_user_id"), "charge_order", ["user_id"], unique=False)
    op.create_index(op.f("ix_charge_order_phase"), "charge_order", ["phase"], unique=False)
    op.create_index(op.f("ix_charge_order_payment_intent_id"), "charge_order", ["payment_intent_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_charge_order_payment_intent_id"), table_name="charge_order")
    op.drop_index(op.f("ix_charge_order_phase"), table_name="charge_order")
    op.drop_index(op.f("ix_charge_order_user_id"), table_name="charge_order")
    op.drop_table("charge_order")
    op.drop_table("charge_product")

    op.drop_index(op.f("ix_user_credit_transaction_created_at"), table_name="user_credit_transaction")
    op.drop_index(op.f("ix_user_credit_transaction_billing_id"), table_name="user_credit_transaction")
    op.drop_index(op.f("ix_user_credit_transaction_user_id"), table_name="user_credit_transaction")
    op.drop_table("user_credit_transaction")

    op.drop_index(op.f("ix_user_billing_user_id"), table_name="user_billing")
    op.drop_table("user_billing")

    op.drop_index(op.f("ix_flux_data_created_at"), table_name="flux_data")
    op.drop_index(op.f("ix_flux_data_replicate_id"), table_name="flux_data")
    op.drop_index(op.f("ix_flux_data_user_id"), table_name="flux_data")
    op.drop_table("flux_data")

    op.drop_index(op.f("ix_user_credit_user_id"), table_name="user_credit")
    op.drop_table("user_credit")
