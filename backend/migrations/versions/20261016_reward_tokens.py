"""Create reward_tokens and security_events

Revision ID: 20261016_reward_tokens
Revises:
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261016_reward_tokens"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "reward_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("token", sa.String(64), nullable=False),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("batch_id", sa.String(64), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", sa.String(16), nullable=False, server_default="UNREDEEMED"),
        sa.Column("redeemed_at", sa.DateTime(), nullable=True),
        sa.Column("expiry_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token", name="uq_reward_tokens_token"),
        sa.CheckConstraint(
            "status IN ('UNREDEEMED', 'REDEEMED')",
            name="ck_reward_tokens_status",
        ),
        sa.CheckConstraint(
            "(status = 'REDEEMED' AND redeemed_at IS NOT NULL) "
            "OR (status = 'UNREDEEMED' AND redeemed_at IS NULL)",
            name="ck_reward_tokens_redeemed_at",
        ),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("reward_tokens", schema=None) as batch_op:
        batch_op.create_index("ix_reward_tokens_token", ["token"], unique=False)
        batch_op.create_index("ix_reward_tokens_batch_id", ["batch_id"], unique=False)
        batch_op.create_index("ix_reward_tokens_status", ["status"], unique=False)
        batch_op.create_index("ix_reward_tokens_product_status", ["product_name", "status"], unique=False)

    op.create_table(
        "security_events",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("resource", sa.String(128), nullable=True),
        sa.Column("action", sa.String(64), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(45), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("security_events", schema=None) as batch_op:
        batch_op.create_index("ix_security_events_event_type", ["event_type"], unique=False)
        batch_op.create_index("ix_security_events_success", ["success"], unique=False)
        batch_op.create_index("ix_security_events_occurred_at", ["occurred_at"], unique=False)
        batch_op.create_index("ix_security_events_type_occurred", ["event_type", "occurred_at"], unique=False)


def downgrade():
    with op.batch_alter_table("security_events", schema=None) as batch_op:
        batch_op.drop_index("ix_security_events_type_occurred")
        batch_op.drop_index("ix_security_events_occurred_at")
        batch_op.drop_index("ix_security_events_success")
        batch_op.drop_index("ix_security_events_event_type")
    op.drop_table("security_events")

    with op.batch_alter_table("reward_tokens", schema=None) as batch_op:
        batch_op.drop_index("ix_reward_tokens_product_status")
        batch_op.drop_index("ix_reward_tokens_status")
        batch_op.drop_index("ix_reward_tokens_batch_id")
        batch_op.drop_index("ix_reward_tokens_token")
    op.drop_table("reward_tokens")
