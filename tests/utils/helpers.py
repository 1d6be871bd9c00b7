"""
Test Helpers
============

Helper functions for common testing operations.
"""

import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

CURSOR = "|"


def split_cursor(text: str) -> Tuple[str, int, int]:
    """
    Remove the ``|`` cursor marker from source text.

    Returns:
        Tuple of (source, 1-based line, 1-based column) of the marker
    """
    offset = text.index(CURSOR)
    source = text[:offset] + text[offset + 1 :]
    before = text[:offset]
    line = before.count("\n") + 1
    column = offset - (before.rfind("\n") + 1) + 1
    return source, line, column


def cursor_request(text: str, **extra: Any) -> Dict[str, Any]:
    """JSON body for a cursor request built from marked source text."""
    source, line, column = split_cursor(text)
    body: Dict[str, Any] = {"source": source, "line": line, "column": column}
    body.update(extra)
    return body


def create_temp_file(content: str, suffix: str = ".tmp") -> Path:
    """Create a temporary file with content."""
    temp_file = tempfile.NamedTemporaryFile(mode="w", suffix=suffix, delete=False, encoding="utf-8")
    temp_file.write(content)
    temp_file.flush()
    temp_file.close()
    return Path(temp_file.name)


def save_yaml_file(data: Dict[str, Any], file_path: Union[str, Path]) -> None:
    """Save data as YAML file."""
    with open(file_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f)


class TemporaryFile:
    """Context manager for temporary files."""

    def __init__(self, content: str, suffix: str = ".tmp"):
        self.content = content
        self.suffix = suffix
        self.path: Optional[Path] = None

    def __enter__(self) -> Path:
        self.path = create_temp_file(self.content, self.suffix)
        return self.path

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.path:
            self.path.unlink(missing_ok=True)


class OperationTimer:
    """Context manager for timing test operations."""

    def __init__(self, description: str = ""):
        self.description = description
        self.start_time = 0.0
        self.end_time = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()

    @property
    def duration(self) -> float:
        """Get the measured duration."""
        return self.end_time - self.start_time
