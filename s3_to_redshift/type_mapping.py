"""Translation between table config types and Redshift column types."""

# Values are what pg_catalog.format_type reports for the created column, so a
# live table read back from the catalogue compares equal to its config.
TYPE_MAPPING = {
    'boolean': 'boolean',
    'float': 'double precision',
    'int': 'integer',
    # timestamp with timezone is not supported in redshift
    'timestamp': 'timestamp without time zone',
    'text': 'character varying(256)',
    'longtext': 'character varying(65535)',
    'date': 'date',
}

VARCHAR_PREFIX = 'character varying'


def get_physical_type(logical_type: str) -> str:
    """Return the Redshift type for `logical_type`, or '' if it is unknown."""
    return TYPE_MAPPING.get(logical_type, '')


def is_varchar(physical_type: str) -> bool:
    return physical_type.startswith(VARCHAR_PREFIX)
