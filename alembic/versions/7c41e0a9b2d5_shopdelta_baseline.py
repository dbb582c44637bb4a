"""shopdelta_baseline

Revision ID: 7c41e0a9b2d5
Revises: 
Create Date: 2026-10-18 09:12:31.402118

Creates shops, shop_sessions, wrapped_shares and wrapped_share_views.
"""
from typing import Sequence, Union

from alembic import op

from shopdelta.db_base import Base
import shopdelta.models  # noqa: F401 - required to register all model metadata


# revision identifiers, used by Alembic.
revision: str = '7c41e0a9b2d5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    Base.metadata.create_all(bind=op.get_bind())


def downgrade() -> None:
    Base.metadata.drop_all(bind=op.get_bind())
