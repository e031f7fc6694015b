from typing import Iterable, List, NamedTuple, Optional, Tuple

from s3_to_redshift.exceptions import SchemaMismatchError
from s3_to_redshift.models import Column, TableSchema
from s3_to_redshift.type_mapping import get_physical_type, is_varchar
from s3_to_redshift.utils import logger

# Schemas loaded from document stores, where columns have no stable order
DEFAULT_UNORDERED_SCHEMAS = ('mongo',)

MISMATCH_TEMPLATE = "mismatched column: {} property: {}, input: {}, target: {}"


class SchemaDiff(NamedTuple):
    # Input columns missing from the target, in the order they should be added
    additions: Tuple[Column, ...]
    errors: Tuple[str, ...]

    @property
    def has_changes(self) -> bool:
        return bool(self.additions)


def check_column(
    input_column: Column, target_column: Column, compare_names: bool = True
) -> List[str]:
    """Return one error per property the two columns disagree on."""
    errors = []

    def mismatch(prop, input_value, target_value):
        errors.append(
            MISMATCH_TEMPLATE.format(input_column.name, prop, input_value, target_value)
        )

    if compare_names and input_column.name != target_column.name:
        mismatch('Name', input_column.name, target_column.name)

    input_type = get_physical_type(input_column.type)
    if input_type != target_column.type and not (
        is_varchar(input_type) and is_varchar(target_column.type)
    ):
        mismatch('Type', input_type or input_column.type, target_column.type)

    if input_column.default != target_column.default:
        mismatch('DefaultVal', input_column.default, target_column.default)
    if input_column.not_null != target_column.not_null:
        mismatch('NotNull', input_column.not_null, target_column.not_null)
    if input_column.primary_key != target_column.primary_key:
        mismatch('PrimaryKey', input_column.primary_key, target_column.primary_key)

    # Configs don't have to express dist/sort keys, so only check them when set
    if input_column.dist_key and not target_column.dist_key:
        mismatch('DistKey', input_column.dist_key, target_column.dist_key)
    if (
        input_column.sort_ordinal != 0
        and input_column.sort_ordinal != target_column.sort_ordinal
    ):
        mismatch('SortOrdinal', input_column.sort_ordinal, target_column.sort_ordinal)

    return errors


def _compare_ordered(input_table: TableSchema, target_table: TableSchema) -> SchemaDiff:
    additions = []
    errors = []

    if len(target_table.columns) > len(input_table.columns):
        errors.append(
            f"target table {target_table.name} has more columns than the input "
            f"({len(target_table.columns)} > {len(input_table.columns)})"
        )

    for position, input_column in enumerate(input_table.columns):
        if position >= len(target_table.columns):
            additions.append(input_column)
            continue
        errors.extend(check_column(input_column, target_table.columns[position]))

    return SchemaDiff(tuple(additions), tuple(errors))


def _compare_unordered(input_table: TableSchema, target_table: TableSchema) -> SchemaDiff:
    additions = []
    errors = []

    # Target columns absent from the input are ignored
    for input_column in input_table.columns:
        target_column = target_table.columns_by_name.get(input_column.name)
        if target_column is None:
            additions.append(input_column)
            continue
        errors.extend(check_column(input_column, target_column, compare_names=False))

    return SchemaDiff(tuple(additions), tuple(errors))


def compare_schemas(
    input_table: TableSchema,
    target_table: TableSchema,
    unordered_schemas: Optional[Iterable[str]] = None,
) -> SchemaDiff:
    if unordered_schemas is None:
        unordered_schemas = DEFAULT_UNORDERED_SCHEMAS

    if target_table.meta.schema in unordered_schemas:
        return _compare_unordered(input_table, target_table)
    return _compare_ordered(input_table, target_table)


def check_schema(
    input_table: TableSchema,
    target_table: TableSchema,
    unordered_schemas: Optional[Iterable[str]] = None,
) -> Tuple[Column, ...]:
    """Return the columns to add, raising if any existing column disagrees."""
    diff = compare_schemas(input_table, target_table, unordered_schemas)
    if diff.errors:
        raise SchemaMismatchError(
            f"{target_table.meta.schema}.{target_table.name}", list(diff.errors)
        )
    if not diff.additions:
        logger.info("No update necessary for %s", target_table.name)
    return diff.additions
