"""
Row-level access policies for the users table.

Each policy carries an in-process predicate and the store-native SQL it is
installed as. Policies are permissive: an operation is allowed when at least
one policy for its command allows it, and denied otherwise. No policy grants
anything to a request without a verified claim, and none grants DELETE to a
non-privileged principal.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from idsync.core.errors import AccessDeniedError
from idsync.database.schema import PRIMARY_KEY, USERS_TABLE, qualified
from idsync.modules.policies.context import SERVICE_ROLE, RequestContext

logger = logging.getLogger(__name__)

Row = Mapping[str, Any]
Predicate = Callable[[RequestContext, Row], bool]


class Command(str, Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ALL = "ALL"


@dataclass(frozen=True)
class Policy:
    name: str
    command: Command
    comment: str
    using: Optional[Predicate] = None
    with_check: Optional[Predicate] = None
    sql_using: Optional[str] = None
    sql_check: Optional[str] = None

    def applies_to(self, command: Command) -> bool:
        return self.command is Command.ALL or self.command is command

    def check_existing(self, ctx: RequestContext, row: Row) -> bool:
        return self.using is not None and self.using(ctx, row)

    def check_proposed(self, ctx: RequestContext, row: Row) -> bool:
        # Postgres falls back to USING when a policy has no WITH CHECK
        predicate = self.with_check or self.using
        return predicate is not None and predicate(ctx, row)

    def render_sql(self, table: str) -> str:
        lines = [f'CREATE POLICY "{self.name}"', f"    ON {table}", f"    FOR {self.command.value}"]
        if self.sql_using:
            lines.append(f"    USING ({self.sql_using})")
        if self.sql_check:
            lines.append(f"    WITH CHECK ({self.sql_check})")
        return "\n".join(lines) + ";"


def owns_row(ctx: RequestContext, row: Row) -> bool:
    subject = ctx.subject
    return subject is not None and row.get(PRIMARY_KEY) == subject


def is_privileged(ctx: RequestContext, row: Row) -> bool:
    return ctx.is_privileged


# Identity-provider subjects are not UUIDs, so the raw sub claim is compared as text
SQL_OWNS_ROW = f"(auth.jwt() ->> 'sub') = {PRIMARY_KEY}"
SQL_IS_SERVICE = f"(auth.jwt() ->> 'role') = '{SERVICE_ROLE}'"

SELF_READ = Policy(
    name="Users can view own data",
    command=Command.SELECT,
    comment="Allows users to read only their own row, matched on the verified token subject",
    using=owns_row,
    sql_using=SQL_OWNS_ROW,
)
SELF_UPDATE = Policy(
    name="Users can update own data",
    command=Command.UPDATE,
    comment="Allows users to update only their own row; the updated row must still be theirs",
    using=owns_row,
    with_check=owns_row,
    sql_using=SQL_OWNS_ROW,
    sql_check=SQL_OWNS_ROW,
)
SELF_INSERT = Policy(
    name="Allow insert for authenticated users",
    command=Command.INSERT,
    comment="Allows authenticated users to insert their own row during initial sync",
    with_check=owns_row,
    sql_check=SQL_OWNS_ROW,
)
SERVICE_FULL_ACCESS = Policy(
    name="Service role has full access",
    command=Command.ALL,
    comment="Allows the service role to bypass per-row restrictions for administrative operations",
    using=is_privileged,
    sql_using=SQL_IS_SERVICE,
)


class AccessPolicySet:
    def __init__(self, policies: Iterable[Policy] = (SELF_READ, SELF_UPDATE, SELF_INSERT, SERVICE_FULL_ACCESS)):
        self.policies = tuple(policies)

    def for_command(self, command: Command) -> List[Policy]:
        return [p for p in self.policies if p.applies_to(command)]

    def allows(
        self,
        ctx: RequestContext,
        command: Command,
        existing: Optional[Row] = None,
        proposed: Optional[Row] = None,
    ) -> bool:
        """Evaluate `command` against the existing and/or proposed row. Fails closed."""
        candidates = self.for_command(command)
        if command in (Command.SELECT, Command.DELETE):
            return existing is not None and any(p.check_existing(ctx, existing) for p in candidates)
        if command is Command.INSERT:
            return proposed is not None and any(p.check_proposed(ctx, proposed) for p in candidates)
        if command is Command.UPDATE:
            return (
                existing is not None
                and proposed is not None
                and any(p.check_existing(ctx, existing) for p in candidates)
                and any(p.check_proposed(ctx, proposed) for p in candidates)
            )
        return False

    def filter_visible(self, ctx: RequestContext, rows: Iterable[Row]) -> List[Dict[str, Any]]:
        return [dict(row) for row in rows if self.allows(ctx, Command.SELECT, existing=row)]

    def check_write(
        self,
        ctx: RequestContext,
        command: Command,
        existing: Optional[Row] = None,
        proposed: Optional[Row] = None,
    ) -> None:
        if not self.allows(ctx, command, existing=existing, proposed=proposed):
            logger.warning(f"Policy denied {command.value} for subject {ctx.subject} (state={ctx.state.value})")
            raise AccessDeniedError(command.value, ctx.subject)

    def render_sql(self, table: str = USERS_TABLE) -> str:
        name = qualified(table)
        statements = [f"ALTER TABLE {name} ENABLE ROW LEVEL SECURITY;"]
        statements += [p.render_sql(name) for p in self.policies]
        statements += [
            f"COMMENT ON POLICY \"{p.name}\" ON {name} IS '{p.comment}';" for p in self.policies
        ]
        return "\n\n".join(statements) + "\n"

    def render_drop_sql(self, table: str = USERS_TABLE) -> str:
        name = qualified(table)
        return "".join(f'DROP POLICY IF EXISTS "{p.name}" ON {name};\n' for p in self.policies)


access_policies = AccessPolicySet()
