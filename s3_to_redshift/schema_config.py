"""Reading and writing the YAML table definitions that accompany input data.

A config file maps table names to their definition, e.g.

    users:
      dest: users
      columns:
        - ordinal: 1
          dest: id
          type: text
          defaultval: ''
          notnull: true
          primarykey: true
          distkey: true
          sortord: 1
      meta:
        datadatecolumn: _data_timestamp
        schema: mongo
"""
from typing import Dict

import yaml

from s3_to_redshift.exceptions import ConfigurationError
from s3_to_redshift.models import Column, TableMeta, TableSchema
from s3_to_redshift.utils import S3File, logger, read_location


def _column_from_dict(data: dict) -> Column:
    return Column(
        name=data['dest'],
        type=data['type'],
        default=str(data.get('defaultval') or ''),
        not_null=bool(data.get('notnull', False)),
        primary_key=bool(data.get('primarykey', False)),
        dist_key=bool(data.get('distkey', False)),
        sort_ordinal=int(data.get('sortord') or 0),
        ordinal=int(data.get('ordinal') or 0),
    )


def _column_to_dict(column: Column) -> dict:
    return {
        'ordinal': column.ordinal,
        'dest': column.name,
        'type': column.type,
        'defaultval': column.default,
        'notnull': column.not_null,
        'primarykey': column.primary_key,
        'distkey': column.dist_key,
        'sortord': column.sort_ordinal,
    }


def table_from_dict(data: dict) -> TableSchema:
    meta = data.get('meta') or {}
    try:
        return TableSchema(
            name=data['dest'],
            columns=tuple(_column_from_dict(c) for c in data.get('columns') or []),
            meta=TableMeta(
                schema=meta.get('schema', ''),
                data_date_column=meta.get('datadatecolumn') or '',
            ),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Malformed table definition: {e!r}")


def table_to_dict(table: TableSchema) -> dict:
    return {
        'dest': table.name,
        'columns': [_column_to_dict(column) for column in table.columns],
        'meta': {
            'datadatecolumn': table.meta.data_date_column,
            'schema': table.meta.schema,
        },
    }


def load_table_config(text: str) -> Dict[str, TableSchema]:
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse table config: {e}")

    if not raw:
        return {}
    if not isinstance(raw, dict):
        raise ConfigurationError("Table config must map table names to definitions")

    return {name: table_from_dict(definition) for name, definition in raw.items()}


def dump_table_config(tables: Dict[str, TableSchema]) -> str:
    return yaml.safe_dump(
        {name: table_to_dict(table) for name, table in tables.items()},
        default_flow_style=False,
        sort_keys=False,
    )


def get_table_from_conf(s3_file: S3File, reader=read_location) -> TableSchema:
    """Load and validate the definition of `s3_file.table` from its config file."""
    logger.info("Parsing table config %s", s3_file.config_file)
    tables = load_table_config(reader(s3_file.config_file))

    try:
        table = tables[s3_file.table]
    except KeyError:
        raise ConfigurationError(
            f"can't find table {s3_file.table} in conf {s3_file.config_file}"
        )

    if table.meta.schema != s3_file.schema:
        raise ConfigurationError(
            f"mismatched schema, conf: {table.meta.schema}, file: {s3_file.schema}"
        )

    return table.validate()
