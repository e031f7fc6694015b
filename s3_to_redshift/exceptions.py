from typing import Dict, List


class RefreshError(Exception):
    pass


class ConfigurationError(RefreshError, ValueError):
    pass


class InputFileNotFoundError(RefreshError):
    pass


class RefreshCancelled(RefreshError):
    pass


class SchemaMismatchError(RefreshError):
    """Every discrepancy found between an input schema and the live table."""

    def __init__(self, table: str, errors: List[str]):
        self.table = table
        self.errors = list(errors)
        super().__init__(
            f"{len(self.errors)} schema mismatch(es) for {table}: "
            + "; ".join(self.errors)
        )


class BatchRefreshError(RefreshError):
    def __init__(self, failures: Dict[str, Exception]):
        self.failures = dict(failures)
        super().__init__(
            "error loading tables: "
            + "; ".join(f"{table}: {error}" for table, error in self.failures.items())
        )
