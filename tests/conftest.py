"""Pytest configuration and fixtures for all tests."""

from typing import Any, List, Tuple

import pytest

from poebridge.utils.session_usage import reset_session_usage


class RecordingLogger:
    """Stand-in for the module loggers that records formatted messages per level."""

    def __init__(self) -> None:
        self.records: List[Tuple[str, str]] = []

    def _record(self, level: str, message: str, *args: Any, **_kwargs: Any) -> None:
        self.records.append((level, message % args if args else message))

    def debug(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._record("debug", message, *args, **kwargs)

    def info(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._record("info", message, *args, **kwargs)

    def warning(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._record("warning", message, *args, **kwargs)

    def error(self, message: str, *args: Any, **kwargs: Any) -> None:
        self._record("error", message, *args, **kwargs)

    def messages(self, level: str) -> List[str]:
        return [message for record_level, message in self.records if record_level == level]


@pytest.fixture(autouse=True)
def clean_session_usage():
    """Every test starts with an empty usage tracker."""
    reset_session_usage()
    yield
    reset_session_usage()


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()
