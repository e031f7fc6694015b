"""Refreshing warehouse tables from their latest S3 snapshot.

Each table goes through the same steps: find its input file, load its
schema config, read what is live in the warehouse, check the live data
isn't newer than the input, then create or extend the table and COPY the
snapshot in a single transaction. Tables are refreshed independently, a
failing table is reported without stopping the others.
"""
import enum
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import requests
import sqlalchemy as sa

from s3_to_redshift.config import SWAP, Config
from s3_to_redshift.db import Warehouse
from s3_to_redshift.exceptions import BatchRefreshError, RefreshCancelled
from s3_to_redshift.models import LiveTable, TableSchema
from s3_to_redshift.operators.copy import copy, truncate, truncate_in_range
from s3_to_redshift.operators.db_tables import (
    get_table_metadata,
    refresh_table_by_swap,
    vacuum_analyze_table,
)
from s3_to_redshift.operators.ddl import create_table, update_table
from s3_to_redshift.operators.vacuum import post_vacuum_job
from s3_to_redshift.schema_config import get_table_from_conf
from s3_to_redshift.staleness import is_input_data_stale, start_end_from_granularity
from s3_to_redshift.utils import (
    S3File,
    S3PathChecker,
    create_s3_file,
    find_latest_input_data,
    logger,
)

FileLocator = Callable[[str], S3File]
SchemaLoader = Callable[[S3File], TableSchema]


class RefreshStatus(enum.Enum):
    SKIPPED = 'skipped'
    DONE = 'done'
    FAILED = 'failed'


@dataclass(frozen=True)
class TableResult:
    table: str
    status: RefreshStatus
    error: Optional[Exception] = None
    # A failed vacuum doesn't undo the load, the table still counts as refreshed
    vacuum_error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        return self.status is RefreshStatus.FAILED


def make_file_locator(config: Config, region: str, client=None) -> FileLocator:
    """Return a function finding the input file of a table in `config.bucket`."""
    path_checker = S3PathChecker(client)

    def locate_file(table: str) -> S3File:
        data_date = config.data_date
        if data_date is None:
            data_date, _ = find_latest_input_data(
                path_checker.client, config.bucket, config.schema, table
            )
        return create_s3_file(
            path_checker,
            bucket=config.bucket,
            region=region,
            schema=config.schema,
            table=table,
            data_date=data_date,
            supplied_config=config.config_file,
            credentials=config.credentials,
        )

    return locate_file


def _load_window(s3_file: S3File, config: Config):
    if config.is_stream:
        return config.stream_start, config.stream_end
    return start_end_from_granularity(s3_file.data_date, config.granularity, config.timezone)


def _is_gzipped(s3_file: S3File, config: Config) -> bool:
    # A manifest's name says nothing about the files it lists
    if s3_file.is_manifest:
        return config.gzip
    return s3_file.is_compressed


def run_copy(
    warehouse: Warehouse,
    s3_file: S3File,
    input_table: TableSchema,
    live_table: Optional[LiveTable],
    config: Config,
):
    """Create or extend the table and load `s3_file`, all in one transaction."""
    schema, table = input_table.meta.schema, input_table.name

    with warehouse.transaction() as tx:
        # Dimension tables are reloaded whole, fact tables only gain rows
        if config.truncate and live_table is not None:
            logger.info("Truncating %s.%s", schema, table)
            truncate(tx, schema, table)

        if live_table is None:
            create_table(tx, input_table)
        else:
            # Remove rows from an earlier load of the same period to avoid duplicates
            start, end = _load_window(s3_file, config)
            truncate_in_range(
                tx, schema, table, input_table.meta.data_date_column, start, end
            )
            update_table(tx, input_table, live_table.schema, config.unordered_schemas)

        copy(
            tx,
            s3_file,
            schema,
            table,
            delimiter=config.delimiter,
            use_credentials=True,
            gzip=_is_gzipped(s3_file, config),
        )


def run_swap(
    warehouse: Warehouse,
    s3_file: S3File,
    input_table: TableSchema,
    live_table: Optional[LiveTable],
    config: Config,
):
    with warehouse.transaction() as tx:
        if live_table is not None:
            # The swap reuses the live layout, so it has to accept the input first
            update_table(tx, input_table, live_table.schema, config.unordered_schemas)
        refresh_table_by_swap(
            tx,
            s3_file,
            input_table,
            table_exists=live_table is not None,
            delimiter=config.delimiter,
            use_credentials=True,
            gzip=_is_gzipped(s3_file, config),
        )


def vacuum_table(warehouse: Warehouse, config: Config, schema: str, table: str):
    """Reclaim the space of deleted rows.

    Queued with the vacuum worker when one is configured, otherwise run
    directly.
    """
    if config.can_queue_vacuum:
        post_vacuum_job(config.gearman_admin_url, config.vacuum_worker, schema, table)
        return
    with warehouse.autocommit() as conn:
        vacuum_analyze_table(conn, schema, table)


def refresh_table(
    warehouse: Warehouse,
    config: Config,
    table: str,
    locate_file: FileLocator,
    load_schema: SchemaLoader = get_table_from_conf,
    cancel_event: Optional[threading.Event] = None,
) -> TableResult:
    logger.info("attempting to run on schema: %s table: %s", config.schema, table)
    try:
        if cancel_event is not None and cancel_event.is_set():
            raise RefreshCancelled(f"Refresh of {table} cancelled before it started")

        s3_file = locate_file(table)
        input_table = load_schema(s3_file)
        schema, name = input_table.meta.schema, input_table.name
        live_table = get_table_metadata(
            warehouse, schema, name, input_table.meta.data_date_column
        )

        if not config.is_stream and live_table is not None and is_input_data_stale(
            s3_file.data_date, live_table.max_data_date, config.granularity, config.timezone
        ):
            if not config.force:
                logger.info("Recent data already exists in db: %s", live_table.max_data_date)
                return TableResult(table, RefreshStatus.SKIPPED)
            logger.info("Forcing update of table: %s", table)

        if config.strategy == SWAP:
            run_swap(warehouse, s3_file, input_table, live_table, config)
            rows_deleted = live_table is not None
        else:
            run_copy(warehouse, s3_file, input_table, live_table, config)
            rows_deleted = config.truncate and live_table is not None
    except Exception as e:
        logger.exception("error running copy for table %s", table)
        return TableResult(table, RefreshStatus.FAILED, error=e)

    logger.info("done with table: %s.%s", schema, name)

    vacuum_error = None
    if rows_deleted:
        try:
            vacuum_table(warehouse, config, schema, name)
        except (requests.exceptions.RequestException, sa.exc.SQLAlchemyError) as e:
            logger.error("Unable to vacuum %s.%s: %s", schema, name, e)
            vacuum_error = e

    return TableResult(table, RefreshStatus.DONE, vacuum_error=vacuum_error)


def refresh_tables(
    warehouse: Warehouse,
    config: Config,
    locate_file: FileLocator,
    load_schema: SchemaLoader = get_table_from_conf,
    cancel_event: Optional[threading.Event] = None,
) -> List[TableResult]:
    """Refresh every table in `config.tables`, `config.workers` at a time.

    Results are returned in the order of `config.tables`.
    """
    with ThreadPoolExecutor(
        max_workers=config.workers, thread_name_prefix='refresh'
    ) as pool:
        futures = [
            pool.submit(
                refresh_table,
                warehouse,
                config,
                table,
                locate_file,
                load_schema,
                cancel_event,
            )
            for table in config.tables
        ]
        return [future.result() for future in futures]


def raise_for_failures(results: Sequence[TableResult]):
    failures = {result.table: result.error for result in results if result.failed}
    if failures:
        raise BatchRefreshError(failures)
