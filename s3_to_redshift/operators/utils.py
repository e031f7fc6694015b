import datetime
from typing import Optional

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'


def quote_identifier(name: str) -> str:
    return '"{}"'.format(name.replace('"', '""'))


def quote_table(schema: Optional[str], table: str) -> str:
    """`"schema"."table"`, or just `"table"` for session-scoped temp tables."""
    if schema is None:
        return quote_identifier(table)
    return f"{quote_identifier(schema)}.{quote_identifier(table)}"


def format_timestamp(date: datetime.datetime) -> str:
    return date.strftime(TIMESTAMP_FORMAT)
