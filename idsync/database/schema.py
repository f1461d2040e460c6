"""
Projection store schema.

One row per identity-provider account:

users:
- external_uid: varchar(128) (primary key, immutable) - subject id from the identity provider
- email: varchar(255) (unique, not null) - empty string when the provider has no email
- display_name: varchar(255) (nullable)
- avatar_url: text (nullable)
- created_at: timestamptz (default: now(), never modified after insert)
- updated_at: timestamptz (default: now(), advanced by trigger on every update)

The column table below is the single source for the DDL and for row validation.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

USERS_TABLE = "users"
SCHEMA = "public"
EMAIL_INDEX = "idx_users_email"
TRIGGER_FUNCTION = "update_updated_at_column"
UPDATE_TRIGGER = "update_users_updated_at"

UID_MAX_LENGTH = 128
EMAIL_MAX_LENGTH = 255
DISPLAY_NAME_MAX_LENGTH = 255

# Postgres SQLSTATE codes reported for row violations
NOT_NULL_VIOLATION = "23502"
STRING_TOO_LONG = "22001"
UNKNOWN_COLUMN = "PGRST204"


@dataclass(frozen=True)
class Column:
    name: str
    sql_type: str
    max_length: Optional[int] = None
    nullable: bool = True
    primary_key: bool = False
    unique: bool = False
    default: Optional[str] = None
    comment: Optional[str] = None

    def ddl(self) -> str:
        parts = [self.name.ljust(14) + self.sql_type]
        if self.primary_key:
            parts.append("PRIMARY KEY")
        if self.unique:
            parts.append("UNIQUE")
        if not self.primary_key:
            parts.append("NULL" if self.nullable else "NOT NULL")
        if self.default:
            parts.append(f"DEFAULT {self.default}")
        return " ".join(parts)


COLUMNS = (
    Column(
        "external_uid", f"VARCHAR({UID_MAX_LENGTH})", UID_MAX_LENGTH,
        nullable=False, primary_key=True,
        comment="Unique identifier from the identity provider",
    ),
    Column(
        "email", f"VARCHAR({EMAIL_MAX_LENGTH})", EMAIL_MAX_LENGTH,
        nullable=False, unique=True,
        comment="User email address (unique)",
    ),
    Column("display_name", f"VARCHAR({DISPLAY_NAME_MAX_LENGTH})", DISPLAY_NAME_MAX_LENGTH),
    Column("avatar_url", "TEXT"),
    Column("created_at", "TIMESTAMPTZ", nullable=False, default="now()"),
    Column("updated_at", "TIMESTAMPTZ", nullable=False, default="now()"),
)

COLUMNS_BY_NAME = {c.name: c for c in COLUMNS}
PRIMARY_KEY = next(c.name for c in COLUMNS if c.primary_key)
UNIQUE_COLUMNS = tuple(c.name for c in COLUMNS if c.unique)


@dataclass(frozen=True)
class RowViolation:
    column: str
    code: str
    message: str


def qualified(table: str = USERS_TABLE) -> str:
    return table if "." in table else f"{SCHEMA}.{table}"


def validate_row(row: Mapping[str, Any], partial: bool = False) -> List[RowViolation]:
    """Check a row (or, with partial=True, an update payload) against the column table."""
    violations = []
    for name, value in row.items():
        column = COLUMNS_BY_NAME.get(name)
        if column is None:
            violations.append(RowViolation(name, UNKNOWN_COLUMN, f"Could not find the '{name}' column"))
            continue
        if value is None:
            if not column.nullable:
                violations.append(RowViolation(
                    name, NOT_NULL_VIOLATION,
                    f'null value in column "{name}" violates not-null constraint',
                ))
            continue
        if column.max_length is not None and isinstance(value, str) and len(value) > column.max_length:
            violations.append(RowViolation(
                name, STRING_TOO_LONG,
                f"value too long for type character varying({column.max_length})",
            ))
    if not partial:
        for column in COLUMNS:
            if column.name not in row and not column.nullable and column.default is None:
                violations.append(RowViolation(
                    column.name, NOT_NULL_VIOLATION,
                    f'null value in column "{column.name}" violates not-null constraint',
                ))
    return violations


def render_schema_sql(table: str = USERS_TABLE) -> str:
    name = qualified(table)
    columns = ",\n".join(f"  {c.ddl()}" for c in COLUMNS)
    comments = "\n".join(
        f"COMMENT ON COLUMN {name}.{c.name} IS '{c.comment}';" for c in COLUMNS if c.comment
    )
    return f"""CREATE TABLE IF NOT EXISTS {name} (
{columns}
);

CREATE INDEX IF NOT EXISTS {EMAIL_INDEX} ON {name}(email);

CREATE OR REPLACE FUNCTION {TRIGGER_FUNCTION}()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = NOW();
    NEW.created_at = OLD.created_at;
    RETURN NEW;
END;
$$ LANGUAGE plpgsql;

DROP TRIGGER IF EXISTS {UPDATE_TRIGGER} ON {name};
CREATE TRIGGER {UPDATE_TRIGGER}
    BEFORE UPDATE ON {name}
    FOR EACH ROW
    EXECUTE FUNCTION {TRIGGER_FUNCTION}();

COMMENT ON TABLE {name} IS 'User data synced from the identity provider';
{comments}
"""


def render_drop_sql(table: str = USERS_TABLE) -> str:
    name = qualified(table)
    return f"""DROP TRIGGER IF EXISTS {UPDATE_TRIGGER} ON {name};
DROP FUNCTION IF EXISTS {TRIGGER_FUNCTION}();
DROP TABLE IF EXISTS {name};
"""

