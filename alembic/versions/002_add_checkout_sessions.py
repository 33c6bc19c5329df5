"""Record applied checkout sessions."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "002_add_checkout_sessions"
down_revision = "001_create_accounts_and_generations"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "checkout_sessions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("subscription_id", sa.String(), nullable=True),
        sa.Column("plan", sa.String(), nullable=False),
        sa.Column("session_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "applied_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.ForeignKeyConstraint(
            ["account_id"],
            ["accounts.id"],
            name="fk_checkout_sessions_account_id_accounts",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_checkout_sessions"),
    )
    op.create_index(
        "ix_checkout_sessions_account_id", "checkout_sessions", ["account_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_checkout_sessions_account_id", table_name="checkout_sessions")
    op.drop_table("checkout_sessions")
