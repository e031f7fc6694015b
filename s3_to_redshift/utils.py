"""A module that defines useful utils."""
import datetime
import logging
import re
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple
from urllib.parse import urlparse

import backoff
import boto3
import botocore.exceptions

from s3_to_redshift.exceptions import InputFileNotFoundError

logger = logging.getLogger('s3_to_redshift')

RFC3339_FORMAT = '%Y-%m-%dT%H:%M:%SZ'
MANIFEST_SUFFIX = 'manifest'

# Probed in order when looking for the data file of a given date
DATA_SUFFIXES = ('json.gz', 'json', 'txt.gz', 'txt', MANIFEST_SUFFIX)

# <schema>_<table>_<date>.<suffix>; the date can't contain underscores
_DATA_FILE_REGEX = re.compile(r'.*_.*_(.*?)\.(.*)$')
_YAML_REGEX = re.compile(r'.*\.ya?ml$')

MAX_LISTED_KEYS = 10000


@dataclass(frozen=True)
class Credentials:
    role_arn: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None

    def to_sql(self) -> str:
        if self.role_arn:
            return f"aws_iam_role={self.role_arn}"
        return (
            f"aws_access_key_id={self.access_key_id};"
            f"aws_secret_access_key={self.secret_access_key}"
        )


@dataclass(frozen=True)
class S3File:
    """Everything needed to COPY one snapshot of a table from S3."""

    bucket: str
    region: str
    schema: str
    table: str
    data_date: datetime.datetime
    suffix: str
    config_file: str = ''
    json_paths: str = 'auto'
    credentials: Credentials = Credentials()

    @property
    def data_location(self) -> str:
        return (
            f"s3://{self.bucket}/{self.schema}_{self.table}_"
            f"{format_rfc3339(self.data_date)}.{self.suffix}"
        )

    @property
    def is_manifest(self) -> bool:
        return self.suffix == MANIFEST_SUFFIX

    @property
    def is_compressed(self) -> bool:
        return self.suffix.endswith('.gz')


def format_rfc3339(date: datetime.datetime) -> str:
    if date.tzinfo is not None:
        date = date.astimezone(datetime.timezone.utc)
    return date.strftime(RFC3339_FORMAT)


def parse_rfc3339(value: str) -> datetime.datetime:
    """Parse a full RFC3339 timestamp into an aware UTC datetime."""
    if value.endswith(('Z', 'z')):
        value = value[:-1] + '+00:00'
    date = datetime.datetime.fromisoformat(value)
    if date.tzinfo is None:
        raise ValueError(f"Timestamp {value} has no timezone designator")
    return date.astimezone(datetime.timezone.utc)


def default_config_location(bucket, schema, table, date) -> str:
    return f"s3://{bucket}/config_{schema}_{table}_{format_rfc3339(date)}.yml"


def split_s3_url(url: str) -> Tuple[str, str]:
    parsed = urlparse(url)
    return parsed.netloc, parsed.path.lstrip('/')


class S3PathChecker:
    def __init__(self, client=None):
        self.client = client or boto3.client('s3')

    @backoff.on_exception(
        backoff.expo, botocore.exceptions.EndpointConnectionError, max_tries=5
    )
    def file_exists(self, url: str) -> bool:
        bucket, key = split_s3_url(url)
        try:
            self.client.head_object(Bucket=bucket, Key=key)
        except botocore.exceptions.ClientError as e:
            if e.response.get('Error', {}).get('Code') in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise
        return True


def create_s3_file(
    path_checker,
    bucket: str,
    region: str,
    schema: str,
    table: str,
    data_date: datetime.datetime,
    supplied_config: str = '',
    credentials: Credentials = Credentials(),
    suffixes: Sequence[str] = DATA_SUFFIXES,
) -> S3File:
    """Build the input file descriptor for `table`'s snapshot at `data_date`.

    The first suffix with an existing object in the bucket wins. Without a
    `supplied_config` the table config is expected next to the data as
    `config_<schema>_<table>_<date>.yml`.
    """
    config_file = supplied_config or default_config_location(
        bucket, schema, table, data_date
    )
    for suffix in suffixes:
        s3_file = S3File(
            bucket=bucket,
            region=region,
            schema=schema,
            table=table,
            data_date=data_date,
            suffix=suffix,
            config_file=config_file,
            credentials=credentials,
        )
        if path_checker.file_exists(s3_file.data_location):
            logger.info("Found input data at %s", s3_file.data_location)
            return s3_file

    raise InputFileNotFoundError(
        f"S3 file not found at: bucket: {bucket} schema: {schema}, "
        f"table: {table} date: {format_rfc3339(data_date)}"
    )


def get_date_and_suffix_from_key(key: str) -> Tuple[datetime.datetime, str]:
    match = _DATA_FILE_REGEX.match(key)
    if not match:
        raise ValueError(f"issue parsing date and suffix from file name: {key}")
    return parse_rfc3339(match.group(1)), match.group(2)


@backoff.on_exception(
    backoff.expo, botocore.exceptions.EndpointConnectionError, max_tries=5
)
def find_latest_input_data(
    client, bucket: str, schema: str, table: str, target_date=None
) -> Tuple[datetime.datetime, str]:
    """Find the most recent `<schema>_<table>_<date>.<suffix>` data file.

    Returns the data date and suffix. Config (yaml) files and keys that don't
    parse are skipped. With `target_date` only a file for that date matches.
    """
    prefix = f"{schema}_{table}"
    response = client.list_objects_v2(Bucket=bucket, Prefix=prefix, MaxKeys=MAX_LISTED_KEYS)
    keys = [item['Key'] for item in response.get('Contents', [])]
    if not keys:
        raise InputFileNotFoundError(
            f"no files found with search path: s3://{bucket}/{prefix}"
        )
    if response.get('IsTruncated'):
        raise InputFileNotFoundError(
            f"too many files returned for s3://{bucket}/{prefix}, "
            f"more than {MAX_LISTED_KEYS}"
        )

    for key in sorted(keys, reverse=True):
        if _YAML_REGEX.match(key):
            logger.info("Ignoring yaml file %s, looking for data files", key)
            continue
        try:
            data_date, suffix = get_date_and_suffix_from_key(key)
        except ValueError as e:
            logger.warning("Ignoring file %s: %s", key, e)
            continue
        if target_date is not None and data_date != target_date:
            logger.info(
                "Date set to %s, ignoring non-matching file %s", target_date, key
            )
            continue
        return data_date, suffix

    raise InputFileNotFoundError(
        f"{len(keys)} files found, but none matching s3://{bucket}/{prefix} "
        f"and date (if set) {target_date}"
    )


@backoff.on_exception(
    backoff.expo, botocore.exceptions.EndpointConnectionError, max_tries=5
)
def get_region_for_bucket(bucket: str, client=None) -> str:
    # Any region works for the lookup itself
    client = client or boto3.client('s3', region_name='us-west-1')
    response = client.get_bucket_location(Bucket=bucket)
    # "US Standard" buckets report no location constraint
    return response.get('LocationConstraint') or 'us-east-1'


@backoff.on_exception(
    backoff.expo, botocore.exceptions.EndpointConnectionError, max_tries=5
)
def read_location(location: str, client=None) -> str:
    """Read a text file from an s3:// URL or the local filesystem."""
    if location.startswith('s3://'):
        client = client or boto3.client('s3')
        bucket, key = split_s3_url(location)
        return client.get_object(Bucket=bucket, Key=key)['Body'].read().decode('utf-8')

    with open(location, encoding='utf-8') as f:
        return f.read()
