"""Add project lifecycle columns (status, activity tracking, closing).

Revision ID: 002
Revises: 001
Create Date: 2025-09-02

Plan limits count only active projects, so closing a project frees a slot.
Existing rows become active with their creation time as last activity.
"""

import sqlalchemy as sa
from alembic import op

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "projects",
        sa.Column("status", sa.String(20), server_default="active", nullable=False),
    )
    op.add_column(
        "projects", sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True)
    )
    op.add_column("projects", sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True))
    op.execute("UPDATE projects SET last_activity_at = created_at WHERE last_activity_at IS NULL")
    op.create_index("idx_projects_org_status", "projects", ["org_id", "status"])


def downgrade() -> None:
    op.drop_index("idx_projects_org_status", table_name="projects")
    op.drop_column("projects", "closed_at")
    op.drop_column("projects", "last_activity_at")
    op.drop_column("projects", "status")
