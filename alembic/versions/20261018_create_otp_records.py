"""create otp_records

Revision ID: 20261018_create_otp_records
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


revision = "20261018_create_otp_records"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "otp_records",
        sa.Column("phone", sa.String(length=20), nullable=False),
        sa.Column("code", sa.String(length=10), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("provider_used", sa.String(length=32), nullable=False),
        sa.PrimaryKeyConstraint("phone"),
    )


def downgrade():
    op.drop_table("otp_records")
