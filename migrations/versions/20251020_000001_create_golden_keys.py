"""create golden keys table

Revision ID: 20251020_000001
Revises:
Create Date: 2025-10-20 00:01:00.000000
"""

from collections.abc import Sequence
from typing import Final

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: Final[str] = "20251020_000001"
down_revision: Final[str | None] = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


APPROVAL_STATUS_ENUM = "golden_key_approval_status_enum"


def upgrade() -> None:
    op.create_table(
        "golden_keys",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("key", sa.String(length=200), nullable=False),
        sa.Column("label", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("data_type", sa.String(length=50), nullable=False),
        sa.Column("required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("owner", sa.String(length=200), nullable=False, server_default=""),
        sa.Column("version", sa.String(length=50), nullable=False, server_default="1.0"),
        sa.Column(
            "approval_status",
            sa.Enum("pending", "approved", "rejected", name=APPROVAL_STATUS_ENUM),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_index("ix_golden_keys_key", "golden_keys", ["key"])
    op.create_index("ix_golden_keys_owner", "golden_keys", ["owner"])
    op.create_index("ix_golden_keys_approval_status", "golden_keys", ["approval_status"])


def downgrade() -> None:
    op.drop_index("ix_golden_keys_approval_status", table_name="golden_keys")
    op.drop_index("ix_golden_keys_owner", table_name="golden_keys")
    op.drop_index("ix_golden_keys_key", table_name="golden_keys")
    op.drop_table("golden_keys")

    sa.Enum(name=APPROVAL_STATUS_ENUM).drop(op.get_bind(), checkfirst=True)
