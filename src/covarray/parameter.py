"""Parameter helpers."""

from typing import Any, Optional

from .types import Category, Parameter, Unit

UCUM_SCHEME = "http://www.opengis.net/def/uom/UCUM/"


def get_category(parameter: Parameter, value: Any) -> Optional[Category]:
    """
    Return the category of a parameter corresponding to an encoded range value.

    Returns None if the value encodes no category.
    """
    for category_id, values in (parameter.category_encoding or {}).items():
        if value in values:
            categories = parameter.observed_property.categories or []
            return next((category for category in categories if category.id == category_id), None)
    return None


def stringify_unit(unit: Optional[Unit], language: str = "en") -> str:
    """
    Return a human-readable symbol or label of a unit, preferring symbols.

    UCUM symbols ``Cel`` and ``1`` are shown as ``°C`` and the empty string.
    """
    if unit is None:
        return ""
    if unit.symbol:
        symbol = unit.symbol
        scheme = None
        if isinstance(symbol, dict):
            scheme = symbol.get("type")
            symbol = symbol.get("value")
        if scheme == UCUM_SCHEME:
            if symbol == "Cel":
                symbol = "°C"
            elif symbol == "1":
                symbol = ""
        return symbol
    labels = unit.label or {}
    if language in labels:
        return labels[language]
    return next(iter(labels.values()), "")
