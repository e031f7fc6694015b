import logging.config
import signal
import sys
import threading
from typing import Optional, Sequence

from s3_to_redshift.config import Config, parse_args
from s3_to_redshift.db import SqlAlchemyWarehouse
from s3_to_redshift.exceptions import BatchRefreshError, ConfigurationError
from s3_to_redshift.logging_config import get_logging_config
from s3_to_redshift.refresh import make_file_locator, raise_for_failures, refresh_tables
from s3_to_redshift.utils import get_region_for_bucket, logger


def install_signal_handlers(cancel_event: threading.Event, warehouse):
    """Stop starting new tables and abort running statements on SIGINT/SIGTERM."""

    def handle(signum, frame):
        logger.warning("Received signal %s, cancelling refresh", signum)
        cancel_event.set()
        warehouse.cancel()

    signal.signal(signal.SIGINT, handle)
    signal.signal(signal.SIGTERM, handle)


def job_finished(schema: str, success: bool):
    logger.info("job-finished schema=%s success=%s", schema, success)


def run(config: Config, warehouse=None, locate_file=None) -> bool:
    """Refresh every configured table, returning whether all of them succeeded."""
    if locate_file is None:
        region = config.aws_region or get_region_for_bucket(config.bucket)
        locate_file = make_file_locator(config, region)

    owns_warehouse = warehouse is None
    if owns_warehouse:
        warehouse = SqlAlchemyWarehouse.from_config(config)

    cancel_event = threading.Event()
    install_signal_handlers(cancel_event, warehouse)

    try:
        results = refresh_tables(
            warehouse, config, locate_file, cancel_event=cancel_event
        )
    finally:
        if owns_warehouse:
            warehouse.dispose()

    try:
        raise_for_failures(results)
    except BatchRefreshError as e:
        logger.error("%s", e)
        return False

    logger.info("done with full run")
    return True


def main(argv: Optional[Sequence[str]] = None):
    args = parse_args(argv)
    try:
        config = Config.from_env(args)
    except ConfigurationError as e:
        logging.config.dictConfig(get_logging_config())
        logger.error("Invalid configuration: %s", e)
        job_finished(args.schema, False)
        sys.exit(1)

    logging.config.dictConfig(get_logging_config(config.log_level))

    try:
        success = run(config)
    except Exception:
        logger.exception("Refresh run failed")
        success = False
    job_finished(config.schema, success)
    if not success:
        sys.exit(1)
