"""seed default stock locations

Revision ID: 20261019_0002
Revises: 20261019_0001
Create Date: 2026-10-19 09:05:00.000000
"""

import uuid
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from stockledger.core.config import settings


# revision identifiers, used by Alembic.
revision: str = "20261019_0002"
down_revision: Union[str, None] = "20261019_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


locations_table = sa.table(
    "locations",
    sa.column("id", sa.String),
    sa.column("code", sa.String),
    sa.column("name", sa.String),
    sa.column("kind", sa.String),
    sa.column("is_active", sa.Boolean),
    sa.column("default_capacity", sa.Integer),
    sa.column("default_min_threshold", sa.Integer),
)


def _default_rows() -> list[dict]:
    return [
        {
            "code": settings.warehouse_location_code,
            "name": "Main Warehouse",
            "kind": "WAREHOUSE",
            "default_capacity": None,
            "default_min_threshold": 0,
        },
        {
            "code": settings.display_location_code,
            "name": "Store Shelf",
            "kind": "DISPLAY",
            "default_capacity": settings.display_default_capacity,
            "default_min_threshold": settings.display_default_min_threshold,
        },
        {
            "code": settings.online_location_code,
            "name": "Online Store",
            "kind": "ONLINE",
            "default_capacity": None,
            "default_min_threshold": 0,
        },
    ]


def upgrade() -> None:
    bind = op.get_bind()
    existing = {row[0] for row in bind.execute(sa.select(locations_table.c.code))}
    rows = [
        {"id": str(uuid.uuid4()), "is_active": True, **row}
        for row in _default_rows()
        if row["code"] not in existing
    ]
    if rows:
        op.bulk_insert(locations_table, rows)


def downgrade() -> None:
    codes = [row["code"] for row in _default_rows()]
    op.execute(locations_table.delete().where(locations_table.c.code.in_(codes)))
