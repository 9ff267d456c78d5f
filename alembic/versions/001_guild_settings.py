"""Guild settings table.

Revision ID: 001_guild_settings
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_guild_settings"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "guild_settings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("guild_id", sa.String(32), unique=True, nullable=False),
        sa.Column("prefix", sa.String(8), nullable=False),
        sa.Column("notion_token", sa.String(255), nullable=True),
        sa.Column("notion_database_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("guild_settings")
