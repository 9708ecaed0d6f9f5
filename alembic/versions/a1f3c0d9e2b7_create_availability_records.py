"""create availability_records

Revision ID: a1f3c0d9e2b7
Revises:
Create Date: 2026-10-19 10:12:44.310518

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1f3c0d9e2b7"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_json = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade():
    op.create_table(
        "availability_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("professional_id", sa.String(length=128), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("base_schedule", _json, nullable=False),
        sa.Column("is_working_day", sa.Boolean(), nullable=False),
        sa.Column("time_slots", _json, nullable=False),
        sa.Column("exceptions", _json, nullable=False),
        sa.Column("next_lock_expiry", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("professional_id", "date", name="uq_availability_prof_date"),
    )
    op.create_index(
        "ix_availability_records_professional_id",
        "availability_records",
        ["professional_id"],
    )
    # the reaper only scans records with an expired hold
    op.create_index(
        "ix_availability_next_lock_expiry",
        "availability_records",
        ["next_lock_expiry"],
    )


def downgrade():
    op.drop_index("ix_availability_next_lock_expiry", table_name="availability_records")
    op.drop_index("ix_availability_records_professional_id", table_name="availability_records")
    op.drop_table("availability_records")
