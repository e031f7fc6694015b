from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Optional, Tuple

from cached_property import cached_property

from s3_to_redshift.exceptions import ConfigurationError


@dataclass(frozen=True)
class Column:
    """A single warehouse column.

    `type` holds the logical type (`int`, `text`, ...) for schemas read from a
    table config and the physical type (`integer`, `character varying(256)`, ...)
    for schemas read back from the warehouse catalogue.
    """

    name: str
    type: str
    default: str = ''
    not_null: bool = False
    primary_key: bool = False
    dist_key: bool = False
    # 0 means the column is not part of the sort key, 1 is the leading sort column
    sort_ordinal: int = 0
    ordinal: int = 0


@dataclass(frozen=True)
class TableMeta:
    schema: str
    data_date_column: str = ''


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: Tuple[Column, ...] = field(default_factory=tuple)
    meta: TableMeta = field(default_factory=lambda: TableMeta(schema='public'))

    @property
    def schema(self) -> str:
        return self.meta.schema

    @property
    def data_date_column(self) -> str:
        return self.meta.data_date_column

    @cached_property
    def columns_by_name(self) -> Dict[str, Column]:
        return {column.name: column for column in self.columns}

    def validate(self):
        if not self.meta.data_date_column:
            raise ConfigurationError(
                f"Data date column must be set for {self.meta.schema}.{self.name}"
            )
        names = [column.name for column in self.columns]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ConfigurationError(
                f"Duplicate column names in {self.name}: {', '.join(duplicates)}"
            )
        return self


@dataclass(frozen=True)
class LiveTable:
    """What is currently in the warehouse for a table that exists.

    `max_data_date` is None when the table exists but holds no rows.
    """

    schema: TableSchema
    max_data_date: Optional[datetime] = None
