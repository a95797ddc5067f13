"""Error types raised inside the Poe adapter."""

from __future__ import annotations


class PoeError(Exception):
    """Base class for adapter errors with a stable error code."""

    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code


class PoeCatalogError(PoeError):
    """The models endpoint answered with an unexpected payload."""

    def __init__(self, message: str) -> None:
        super().__init__("catalog_error", message)


class PoeModelRecordError(PoeError):
    """A single catalog record could not be normalized."""

    def __init__(self, message: str) -> None:
        super().__init__("model_record_error", message)
