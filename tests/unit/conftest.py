import datetime
from contextlib import contextmanager

import pytest
import sqlalchemy as sa

from s3_to_redshift.config import Config
from s3_to_redshift.models import Column, LiveTable, TableMeta, TableSchema
from s3_to_redshift.utils import Credentials, S3File


class FakeWarehouse:
    """Records statements instead of running them.

    `query_results` maps a fragment of a query to the rows it returns and
    a statement containing `fail_on` raises like a failing database would.
    """

    def __init__(self, query_results=None, fail_on=None):
        self.query_results = query_results or {}
        self.fail_on = fail_on
        self.statements = []
        self.queries = []
        self.committed = []
        self.rolled_back = []
        self.autocommitted = []
        self.cancelled = False

    def execute(self, statement, params=None):
        self.statements.append(statement)
        if self.fail_on and self.fail_on in statement:
            raise sa.exc.OperationalError(statement, params, Exception("failed"))

    def query(self, statement, params=None):
        self.queries.append((statement, params))
        for fragment, rows in self.query_results.items():
            if fragment in statement:
                return rows
        return []

    @contextmanager
    def transaction(self):
        start = len(self.statements)
        try:
            yield self
        except Exception:
            self.rolled_back.append(self.statements[start:])
            raise
        self.committed.append(self.statements[start:])

    @contextmanager
    def autocommit(self):
        start = len(self.statements)
        yield self
        self.autocommitted.extend(self.statements[start:])

    def cancel(self):
        self.cancelled = True


@pytest.fixture
def warehouse():
    return FakeWarehouse()


@pytest.fixture
def make_warehouse():
    return FakeWarehouse


@pytest.fixture
def input_table():
    return TableSchema(
        name='users',
        columns=(
            Column(
                'id',
                'text',
                not_null=True,
                primary_key=True,
                dist_key=True,
                sort_ordinal=1,
                ordinal=1,
            ),
            Column('name', 'text', ordinal=2),
            Column('_data_timestamp', 'timestamp', ordinal=3),
        ),
        meta=TableMeta(schema='mongo', data_date_column='_data_timestamp'),
    )


@pytest.fixture
def live_schema():
    return TableSchema(
        name='users',
        columns=(
            Column(
                'id',
                'character varying(256)',
                not_null=True,
                primary_key=True,
                dist_key=True,
                sort_ordinal=1,
                ordinal=1,
            ),
            Column('name', 'character varying(256)', ordinal=2),
            Column('_data_timestamp', 'timestamp without time zone', ordinal=3),
        ),
        meta=TableMeta(schema='mongo', data_date_column='_data_timestamp'),
    )


@pytest.fixture
def live_table(live_schema):
    return LiveTable(
        schema=live_schema, max_data_date=datetime.datetime(2015, 11, 9, 23, 0)
    )


@pytest.fixture
def s3_file():
    return S3File(
        bucket='metrics',
        region='us-east-1',
        schema='mongo',
        table='users',
        data_date=datetime.datetime(2015, 11, 10, 23, 0, tzinfo=datetime.timezone.utc),
        suffix='json.gz',
        config_file='s3://metrics/config_mongo_users_2015-11-10T23:00:00Z.yml',
        credentials=Credentials(role_arn='arn:aws:iam::123456789012:role/redshift'),
    )


@pytest.fixture
def config():
    return Config(
        tables=('users',),
        redshift_db='warehouse',
        redshift_user='loader',
        redshift_password='secret',
        redshift_role_arn='arn:aws:iam::123456789012:role/redshift',
        workers=1,
    )
