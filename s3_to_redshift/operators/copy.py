"""Bulk loading of S3 snapshots and removal of the rows they replace."""
import datetime
from typing import Optional

from s3_to_redshift.db import Executor
from s3_to_redshift.operators.utils import format_timestamp, quote_identifier, quote_table
from s3_to_redshift.utils import S3File, logger


def copy_sql(
    schema: Optional[str],
    table: str,
    s3_file: S3File,
    delimiter: str = '',
    use_credentials: bool = True,
    gzip: bool = True,
) -> str:
    """Build the COPY statement loading `s3_file` into `schema.table`.

    An empty `delimiter` loads the file as JSON using `s3_file.json_paths`,
    anything else as delimited text. A manifest file lists the data files
    to load rather than holding the data itself, whatever their format.
    """
    parts = [
        f"COPY {quote_table(schema, table)} FROM '{s3_file.data_location}' WITH"
    ]
    if gzip:
        parts.append("GZIP")
    if delimiter:
        parts.append(f"DELIMITER AS '{delimiter}' REMOVEQUOTES ESCAPE")
    else:
        parts.append(f"JSON '{s3_file.json_paths}'")
    parts.extend(
        [
            f"REGION '{s3_file.region}'",
            "TIMEFORMAT 'auto' TRIMBLANKS BLANKSASNULL ACCEPTANYDATE TRUNCATECOLUMNS",
            "STATUPDATE ON COMPUPDATE ON",
        ]
    )
    if s3_file.is_manifest:
        parts.append("MANIFEST")
    if use_credentials:
        parts.append(f"CREDENTIALS '{s3_file.credentials.to_sql()}'")
    return ' '.join(parts)


def copy(
    executor: Executor,
    s3_file: S3File,
    schema: Optional[str] = None,
    table: Optional[str] = None,
    delimiter: str = '',
    use_credentials: bool = True,
    gzip: bool = True,
):
    """COPY `s3_file` into its own table, or into `schema.table` if given."""
    if table is None:
        schema, table = s3_file.schema, s3_file.table
    logger.info("Loading %s into %s", s3_file.data_location, table)
    executor.execute(copy_sql(schema, table, s3_file, delimiter, use_credentials, gzip))


def truncate_sql(schema: str, table: str) -> str:
    return f"DELETE FROM {quote_table(schema, table)}"


def truncate(executor: Executor, schema: str, table: str):
    # DELETE rather than TRUNCATE, which would commit the open transaction
    executor.execute(truncate_sql(schema, table))


def truncate_in_range_sql(
    schema: str,
    table: str,
    column: str,
    start: datetime.datetime,
    end: datetime.datetime,
) -> str:
    column = quote_identifier(column)
    return (
        f"DELETE FROM {quote_table(schema, table)} "
        f"WHERE {column} >= '{format_timestamp(start)}' "
        f"AND {column} < '{format_timestamp(end)}'"
    )


def truncate_in_range(
    executor: Executor,
    schema: str,
    table: str,
    column: str,
    start: datetime.datetime,
    end: datetime.datetime,
):
    """Delete the rows of the [start, end) window a reload is about to replace."""
    executor.execute(truncate_in_range_sql(schema, table, column, start, end))
