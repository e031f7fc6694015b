"""Run configuration, built once from the command line and the environment."""
import argparse
import datetime
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple

import pytz

from s3_to_redshift.exceptions import ConfigurationError
from s3_to_redshift.operators.schema_compare import DEFAULT_UNORDERED_SCHEMAS
from s3_to_redshift.staleness import (
    DAY,
    STREAM,
    SUPPORTED_GRANULARITIES,
    get_timezone,
    parse_stream_bounds,
    validate_granularity,
)
from s3_to_redshift.utils import Credentials, parse_rfc3339

APPEND = 'append'
SWAP = 'swap'
STRATEGIES = (APPEND, SWAP)

DEFAULT_REDSHIFT_HOST = 'localhost'
DEFAULT_REDSHIFT_PORT = 5439
DEFAULT_CONNECT_TIMEOUT = 60
DEFAULT_WORKERS = 4

REQUIRED_ENV = ('REDSHIFT_DB', 'REDSHIFT_USER', 'REDSHIFT_PASSWORD')


@dataclass(frozen=True)
class Config:
    tables: Tuple[str, ...]
    redshift_db: str
    redshift_user: str
    redshift_password: str

    schema: str = 'mongo'
    bucket: str = 'metrics'
    truncate: bool = False
    force: bool = False
    # None picks the most recent data file in the bucket
    data_date: Optional[datetime.datetime] = None
    config_file: str = ''
    gzip: bool = True
    # Empty loads JSON
    delimiter: str = ''
    granularity: str = DAY
    stream_start: Optional[datetime.datetime] = None
    stream_end: Optional[datetime.datetime] = None
    timezone: datetime.tzinfo = pytz.UTC
    strategy: str = APPEND
    workers: int = DEFAULT_WORKERS

    redshift_host: str = DEFAULT_REDSHIFT_HOST
    redshift_port: int = DEFAULT_REDSHIFT_PORT
    redshift_role_arn: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    # None looks the region up from the bucket
    aws_region: Optional[str] = None
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    statement_timeout: Optional[int] = None

    vacuum_worker: Optional[str] = None
    gearman_admin_url: Optional[str] = None
    unordered_schemas: Tuple[str, ...] = DEFAULT_UNORDERED_SCHEMAS
    log_level: str = 'INFO'

    @property
    def credentials(self) -> Credentials:
        return Credentials(
            role_arn=self.redshift_role_arn,
            access_key_id=self.aws_access_key_id,
            secret_access_key=self.aws_secret_access_key,
        )

    @property
    def is_stream(self) -> bool:
        return self.granularity == STREAM

    @property
    def can_queue_vacuum(self) -> bool:
        return bool(self.gearman_admin_url and self.vacuum_worker)

    @classmethod
    def from_env(
        cls, args: argparse.Namespace, environ: Optional[Mapping[str, str]] = None
    ) -> "Config":
        if environ is None:
            environ = os.environ

        missing = [name for name in REQUIRED_ENV if not environ.get(name)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        tables = tuple(t.strip() for t in (args.tables or '').split(',') if t.strip())
        if not tables:
            raise ConfigurationError("At least one table must be given with --tables")

        granularity = validate_granularity(args.granularity)
        if args.strategy not in STRATEGIES:
            raise ConfigurationError(
                f"Unsupported strategy {args.strategy!r}, must be one of "
                f"{', '.join(STRATEGIES)}"
            )
        if args.workers < 1:
            raise ConfigurationError("--workers must be at least 1")

        data_date = None
        if args.date:
            try:
                data_date = parse_rfc3339(args.date)
            except ValueError as e:
                raise ConfigurationError(f"issue parsing date: {args.date}: {e}")

        stream_start = stream_end = None
        if granularity == STREAM:
            stream_start, stream_end = parse_stream_bounds(
                args.stream_start, args.stream_end
            )

        unordered_schemas = tuple(
            s.strip()
            for s in environ.get(
                'UNORDERED_SCHEMAS', ','.join(DEFAULT_UNORDERED_SCHEMAS)
            ).split(',')
            if s.strip()
        )

        return cls(
            tables=tables,
            redshift_db=environ['REDSHIFT_DB'],
            redshift_user=environ['REDSHIFT_USER'],
            redshift_password=environ['REDSHIFT_PASSWORD'],
            schema=args.schema,
            bucket=args.bucket,
            truncate=args.truncate,
            force=args.force,
            data_date=data_date,
            config_file=args.config or '',
            gzip=args.gzip,
            delimiter=args.delimiter or '',
            granularity=granularity,
            stream_start=stream_start,
            stream_end=stream_end,
            timezone=get_timezone(args.timezone),
            strategy=args.strategy,
            workers=args.workers,
            redshift_host=environ.get('REDSHIFT_HOST') or DEFAULT_REDSHIFT_HOST,
            redshift_port=_int_env(environ, 'REDSHIFT_PORT', DEFAULT_REDSHIFT_PORT),
            redshift_role_arn=environ.get('REDSHIFT_ROLE_ARN') or None,
            aws_access_key_id=environ.get('AWS_ACCESS_KEY_ID') or None,
            aws_secret_access_key=environ.get('AWS_SECRET_ACCESS_KEY') or None,
            aws_region=environ.get('AWS_REGION') or None,
            connect_timeout=_int_env(
                environ, 'REDSHIFT_CONNECT_TIMEOUT', DEFAULT_CONNECT_TIMEOUT
            ),
            statement_timeout=_int_env(environ, 'REDSHIFT_STATEMENT_TIMEOUT_MS', None),
            vacuum_worker=environ.get('VACUUM_WORKER') or None,
            gearman_admin_url=environ.get('GEARMAN_ADMIN_URL') or None,
            unordered_schemas=unordered_schemas,
            log_level=environ.get('LOG_LEVEL', 'INFO').upper(),
        )


def _int_env(environ: Mapping[str, str], name: str, default):
    value = environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='s3-to-redshift',
        description=(
            "Load the S3 snapshot of each table into Redshift, creating or "
            "extending the table as needed."
        ),
    )
    parser.add_argument('--schema', default='mongo', help="Input and target schema")
    parser.add_argument(
        '--tables', required=True, help="Comma separated list of tables to load"
    )
    parser.add_argument('--bucket', default='metrics', help="Bucket holding the input files")
    parser.add_argument(
        '--truncate',
        action='store_true',
        help="Delete all existing rows before loading (dimension tables)",
    )
    parser.add_argument(
        '--force', action='store_true', help="Load even if the input data is stale"
    )
    parser.add_argument(
        '--date',
        help="RFC3339 data date of the input file, defaults to the latest file found",
    )
    parser.add_argument('--config', help="Table config location, local path or s3:// URL")
    parser.add_argument(
        '--gzip', action=argparse.BooleanOptionalAction, default=True,
        help="Whether the files listed by a manifest are gzip compressed",
    )
    parser.add_argument(
        '--delimiter', default='', help="Field delimiter of text input, empty for JSON"
    )
    parser.add_argument(
        '--granularity', default=DAY, choices=SUPPORTED_GRANULARITIES,
        help="Period of the data snapshots",
    )
    parser.add_argument(
        '--stream-start', help="Start of the window to reload in stream mode"
    )
    parser.add_argument('--stream-end', help="End of the window to reload in stream mode")
    parser.add_argument(
        '--timezone', default='UTC', help="Timezone of the timestamps in the target table"
    )
    parser.add_argument('--strategy', default=APPEND, choices=STRATEGIES)
    parser.add_argument(
        '--workers', type=int, default=DEFAULT_WORKERS,
        help="Number of tables to load concurrently",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)
