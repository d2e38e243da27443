"""initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op

from sitebatch.database import Base
import sitebatch.models  # noqa: F401  (registers tables on Base.metadata)

revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Tables, constraints and partial indexes come straight from the ORM models.
    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
