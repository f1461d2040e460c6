"""Ordered SQL migrations for the projection store."""

from typing import List, Tuple

from idsync.database.schema import USERS_TABLE, render_drop_sql, render_schema_sql
from idsync.modules.policies.service import access_policies


def migrations(table: str = USERS_TABLE) -> List[Tuple[str, str]]:
    return [
        ("01_create_schema", render_schema_sql(table)),
        ("02_setup_rls", access_policies.render_sql(table)),
    ]


def teardown_sql(table: str = USERS_TABLE) -> str:
    return access_policies.render_drop_sql(table) + render_drop_sql(table)
