import datetime
from typing import Optional

from s3_to_redshift.db import Executor
from s3_to_redshift.models import Column, LiveTable, TableMeta, TableSchema
from s3_to_redshift.operators.copy import copy, truncate
from s3_to_redshift.operators.ddl import create_table
from s3_to_redshift.operators.utils import quote_identifier, quote_table
from s3_to_redshift.utils import S3File, logger

TABLE_EXISTS_QUERY = """
SELECT table_name
FROM information_schema.tables
WHERE table_schema = :schema AND table_name = :table
"""

# One row per column: ordinal, name, type, default, not null, primary key,
# dist key and sort ordinal, in the types pg_catalog.format_type reports
COLUMNS_QUERY = """
SELECT
  f.attnum AS ordinal,
  f.attname AS name,
  pg_catalog.format_type(f.atttypid, f.atttypmod) AS col_type,
  CASE
      WHEN f.atthasdef = 't' THEN d.adsrc
      ELSE ''
  END AS default_val,
  f.attnotnull AS not_null,
  p.contype IS NOT NULL AND p.contype = 'p' AS primary_key,
  f.attisdistkey AS dist_key,
  f.attsortkeyord AS sort_ord
FROM pg_attribute f
  JOIN pg_class c ON c.oid = f.attrelid
  LEFT JOIN pg_attrdef d ON d.adrelid = c.oid AND d.adnum = f.attnum
  LEFT JOIN pg_namespace n ON n.oid = c.relnamespace
  LEFT JOIN pg_constraint p ON p.conrelid = c.oid AND f.attnum = ANY (p.conkey)
WHERE c.relkind = 'r'::char
  AND n.nspname = :schema
  AND c.relname = :table
  AND f.attnum > 0
ORDER BY f.attnum
"""


def _column_from_row(row) -> Column:
    ordinal, name, col_type, default, not_null, primary_key, dist_key, sort_ord = row
    return Column(
        name=name,
        type=col_type,
        default=default or '',
        not_null=bool(not_null),
        primary_key=bool(primary_key),
        dist_key=bool(dist_key),
        sort_ordinal=int(sort_ord or 0),
        ordinal=int(ordinal),
    )


def get_table_metadata(
    executor: Executor, schema: str, table: str, data_date_column: str
) -> Optional[LiveTable]:
    """Read the live definition of `schema.table` and its latest data date.

    Returns None if the table doesn't exist.
    """
    params = {'schema': schema, 'table': table}
    if not executor.query(TABLE_EXISTS_QUERY, params):
        logger.info("Table %s.%s does not exist", schema, table)
        return None

    columns = tuple(
        _column_from_row(row) for row in executor.query(COLUMNS_QUERY, params)
    )
    table_schema = TableSchema(
        name=table,
        columns=columns,
        meta=TableMeta(schema=schema, data_date_column=data_date_column),
    )

    rows = executor.query(
        f"SELECT MAX({quote_identifier(data_date_column)}) FROM {quote_table(schema, table)}"
    )
    max_data_date = rows[0][0] if rows else None
    logger.info("Latest data in %s.%s is from %s", schema, table, max_data_date)

    return LiveTable(schema=table_schema, max_data_date=max_data_date)


def get_temp_table_name(table: str, suffix: str) -> str:
    return f"{table}_{suffix}".lower()


def get_swap_suffix(data_date: datetime.datetime) -> str:
    return data_date.strftime('%Y%m%dT%H%M%S')


def refresh_table_by_swap(
    executor: Executor,
    s3_file: S3File,
    input_table: TableSchema,
    table_exists: bool = True,
    delimiter: str = '',
    use_credentials: bool = True,
    gzip: bool = True,
):
    """Replace the whole contents of a table with the snapshot in `s3_file`.

    The snapshot is loaded into a session temp table shaped like the target
    first, so a failing COPY never touches the target. The target is then
    emptied and refilled from the temp table in the caller's transaction.

    A table that doesn't exist yet is created and loaded directly.
    """
    schema, table = input_table.meta.schema, input_table.name

    if not table_exists:
        create_table(executor, input_table)
        copy(executor, s3_file, schema, table, delimiter, use_credentials, gzip)
        return

    temp_table = get_temp_table_name(table, get_swap_suffix(s3_file.data_date))
    target = quote_table(schema, table)
    temp = quote_table(None, temp_table)

    logger.info("Loading %s through temp table %s", target, temp_table)
    executor.execute(f"CREATE TEMP TABLE {temp} (LIKE {target})")
    copy(executor, s3_file, None, temp_table, delimiter, use_credentials, gzip)
    truncate(executor, schema, table)
    executor.execute(f"INSERT INTO {target} SELECT * FROM {temp}")
    executor.execute(f"DROP TABLE {temp}")


def vacuum_analyze_table(executor: Executor, schema: str, table: str):
    target = quote_table(schema, table)
    executor.execute(f"VACUUM FULL {target}; ANALYZE {target}")
