from typing import List, Sequence

from s3_to_redshift.db import Executor
from s3_to_redshift.exceptions import ConfigurationError
from s3_to_redshift.models import Column, TableSchema
from s3_to_redshift.operators.schema_compare import check_schema
from s3_to_redshift.operators.utils import quote_identifier, quote_table
from s3_to_redshift.type_mapping import get_physical_type
from s3_to_redshift.utils import logger


def get_column_sql(column: Column) -> str:
    physical_type = get_physical_type(column.type)
    if not physical_type:
        raise ConfigurationError(
            f"Unknown type {column.type!r} for column {column.name}"
        )

    parts = [quote_identifier(column.name), physical_type]
    if column.default:
        parts.append(f"DEFAULT {column.default}")
    if column.not_null:
        parts.append("NOT NULL")
    # Multiple leading sort columns are rejected by redshift itself
    if column.sort_ordinal == 1:
        parts.append("SORTKEY")
    if column.primary_key:
        parts.append("PRIMARY KEY")
    if column.dist_key:
        parts.append("DISTKEY")
    return ' '.join(parts)


def create_table_sql(table: TableSchema) -> str:
    has_sort_key = any(column.sort_ordinal == 1 for column in table.columns)
    has_dist_key = any(column.dist_key for column in table.columns)
    if not (has_sort_key and has_dist_key):
        raise ConfigurationError(
            f"Create table {table.meta.schema}.{table.name} must declare a sortkey "
            f"and a distkey"
        )

    column_sql = ', '.join(get_column_sql(column) for column in table.columns)
    return f"CREATE TABLE {quote_table(table.meta.schema, table.name)} ({column_sql})"


def alter_table_sql(table: TableSchema, additions: Sequence[Column]) -> List[str]:
    """One statement per column, redshift can't add several in one ALTER."""
    target = quote_table(table.meta.schema, table.name)
    return [
        f"ALTER TABLE {target} ADD COLUMN {get_column_sql(column)}"
        for column in additions
    ]


def create_table(executor: Executor, table: TableSchema):
    executor.execute(create_table_sql(table))


def update_table(
    executor: Executor,
    input_table: TableSchema,
    target_table: TableSchema,
    unordered_schemas=None,
) -> List[str]:
    """Add input columns the live table lacks.

    Only additive changes are made. Any disagreement on existing columns
    raises before a statement is run, and a failing ALTER leaves the
    enclosing transaction to roll back the ones before it.
    """
    additions = check_schema(input_table, target_table, unordered_schemas)
    statements = alter_table_sql(target_table, additions)
    for statement in statements:
        executor.execute(statement)
    if statements:
        logger.info(
            "Added %s column(s) to %s.%s",
            len(statements),
            target_table.meta.schema,
            target_table.name,
        )
    return statements
