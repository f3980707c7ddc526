"""Type-tag guards used at every transformation boundary."""

from typing import Any

from .errors import TypeMismatchError
from .types import COVERAGE, DOMAIN


def is_coverage(obj: Any) -> bool:
    return getattr(obj, "type", None) == COVERAGE


def assert_is_coverage(obj: Any) -> None:
    """Raise ``TypeMismatchError`` unless ``obj`` is tagged as a Coverage."""
    if not is_coverage(obj):
        raise TypeMismatchError(f"must be a Coverage, got {type(obj).__name__}")


def is_domain(obj: Any) -> bool:
    return getattr(obj, "type", None) == DOMAIN


def assert_is_domain(obj: Any) -> None:
    """Raise ``TypeMismatchError`` unless ``obj`` is tagged as a Domain."""
    if not is_domain(obj):
        raise TypeMismatchError(f"must be a Domain, got {type(obj).__name__}")
