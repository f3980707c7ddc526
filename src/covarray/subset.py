"""
Index and value subsetting of domains and coverages.

Value constraints are resolved into index constraints (nearest-neighbour
and interval search, ISO date comparison, longitude wrapping) which are then
applied by index subsetting. Subsetted ranges translate indices back to the
source range on access, no values are copied.
"""

from __future__ import annotations

import logging
import numbers
from datetime import date
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

import numpy as np

from .coverage import Coverage, Range
from .domain import Axis, Domain, StridedBounds
from .errors import InvalidConstraintError, InvalidConstraintTypeError, ValueNotFoundError
from .referencing import as_time, get_longitude_wrapper, is_iso_date_axis, is_longitude_axis
from .search import index_of_nearest, indices_of_nearest
from .types import BBoxTuple, ExactMatch, IndexConstraint, Interval, Nearest, ValueConstraint
from .typing import GridAxes, IndexObject, RawIndexConstraints, RawValueConstraints, Shape
from .validate import assert_is_coverage

logger = logging.getLogger(__name__)

__all__ = [
    "normalize_index_constraints",
    "subset_domain_by_index",
    "subset_coverage_by_index",
    "parse_value_constraint",
    "subset_coverage_by_value",
    "subset_by_bbox",
]


# Index subsetting


def _is_integer(value: Any) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _constraint_triple(axis_name: str, raw: Any, length: int) -> tuple:
    if isinstance(raw, IndexConstraint):
        return raw.start, raw.stop, raw.step
    if _is_integer(raw):
        return int(raw), int(raw) + 1, 1
    if isinstance(raw, slice):
        parts = {"start": raw.start, "stop": raw.stop, "step": raw.step}
    elif isinstance(raw, Mapping):
        parts = {name: raw.get(name) for name in ("start", "stop", "step")}
    else:
        raise InvalidConstraintTypeError(
            f"Invalid index constraint for {axis_name}: {raw!r}", axis=axis_name
        )

    defaults = {"start": 0, "stop": length, "step": 1}
    triple = []
    for name in ("start", "stop", "step"):
        value = parts[name]
        if value is None:
            value = defaults[name]
        elif not _is_integer(value):
            raise InvalidConstraintTypeError(
                f"Invalid constraint for {axis_name}: {name}={value!r} must be an integer",
                axis=axis_name,
            )
        triple.append(int(value))
    return tuple(triple)


def normalize_index_constraints(
    domain: Domain,
    constraints: Optional[RawIndexConstraints] = None,
) -> Dict[str, IndexConstraint]:
    """
    Normalize per-axis index constraints into ``IndexConstraint`` objects.

    Accepted per-axis constraints:
     - integer ``n``: selects exactly index ``n``
     - mapping with optional ``start``, ``stop``, ``step``
     - ``slice`` objects and ``IndexConstraint`` instances
     - None: the full axis

    Axes missing from ``constraints`` select their full range and unknown
    axis keys are ignored.

    Raises:
        InvalidConstraintError: If ``step <= 0``, ``start >= stop``, ``start < 0``
            or ``start`` is not an index of the axis
    """
    normalized: Dict[str, IndexConstraint] = {}
    for axis_name, raw in (constraints or {}).items():
        if axis_name not in domain.axes or raw is None:
            continue
        length = len(domain.axes[axis_name].values)
        start, stop, step = _constraint_triple(axis_name, raw, length)
        if step <= 0:
            raise InvalidConstraintError(
                f"Invalid constraint for {axis_name}: step={step} must be > 0", axis=axis_name
            )
        if start >= stop or start < 0:
            raise InvalidConstraintError(
                f"Invalid constraint for {axis_name}: stop={stop} must be > start={start} and both >= 0",
                axis=axis_name,
            )
        if start >= length:
            raise InvalidConstraintError(
                f"Invalid constraint for {axis_name}: start={start} is beyond the axis length {length}",
                axis=axis_name,
            )
        normalized[axis_name] = IndexConstraint(start=start, stop=stop, step=step)

    for axis_name, axis in domain.axes.items():
        if axis_name not in normalized:
            normalized[axis_name] = IndexConstraint(start=0, stop=len(axis.values), step=1)
    return normalized


def _subset_axis(axis: Axis, constraint: IndexConstraint) -> Axis:
    values = axis.values
    if constraint.is_identity(len(values)):
        return axis

    start, stop, step = constraint.start, constraint.stop, constraint.step
    # slicing keeps the container kind, numpy arrays give views
    new_values = values[start:stop] if step == 1 else values[start:stop:step]
    new_bounds = StridedBounds(axis.bounds, start, step) if axis.bounds is not None else None
    return axis.model_copy(update={"values": new_values, "bounds": new_bounds})


def subset_domain_by_index(domain: Domain, constraints: Optional[RawIndexConstraints] = None) -> Domain:
    """Return a new domain with every axis sliced by its index constraint."""
    normalized = normalize_index_constraints(domain, constraints)
    axes = {
        axis_name: _subset_axis(axis, normalized[axis_name])
        for axis_name, axis in domain.axes.items()
    }
    return domain.model_copy(update={"axes": axes})


class SubsetRange(Range):
    """Range of a subsetted coverage, translating indices to the source range."""

    def __init__(self, source: Range, constraints: Mapping[str, IndexConstraint], shape: Shape) -> None:
        self.source = source
        self.constraints = constraints
        self.shape = shape
        self.data_type = source.data_type

    def get(self, index: IndexObject) -> Any:
        source_index = dict(index)
        # missing keys are index 0 of the subset, not of the source
        for axis_name, constraint in self.constraints.items():
            source_index[axis_name] = constraint.source_index(index.get(axis_name) or 0)
        return self.source.get(source_index)


class IndexSubsetCoverage(Coverage):
    """Coverage restricted by index constraints, ranges are resolved on access."""

    def __init__(self, source: Coverage, domain: Domain, constraints: Mapping[str, IndexConstraint]) -> None:
        super().__init__(source.parameters, source.domain_type)
        self.source = source
        self._domain = domain
        self.constraints = dict(constraints)

    async def load_domain(self) -> Domain:
        return self._domain

    def _wrap(self, source_range: Range) -> Range:
        return SubsetRange(source_range, self.constraints, self._domain.shape)

    async def load_range(self, key: str) -> Range:
        return self._wrap(await self.source.load_range(key))

    async def load_ranges(self, keys: Optional[Iterable[str]] = None) -> Dict[str, Range]:
        ranges = await self.source.load_ranges(keys)
        return {key: self._wrap(source_range) for key, source_range in ranges.items()}


async def subset_coverage_by_index(cov: Coverage, constraints: RawIndexConstraints) -> Coverage:
    """
    Generic ``subset_by_index`` for coverage implementations.

    The returned coverage supports further subsetting of its own.
    """
    assert_is_coverage(cov)
    domain = await cov.load_domain()
    normalized = normalize_index_constraints(domain, constraints)
    new_domain = subset_domain_by_index(domain, normalized)
    logger.debug(f"Subset domain by index from {domain.shape} to {new_domain.shape}")
    return IndexSubsetCoverage(cov, new_domain, normalized)


# Value subsetting


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Number) and not isinstance(value, bool)


def parse_value_constraint(axis_name: str, raw: Any) -> ValueConstraint:
    """
    Classify a raw value constraint.

    Accepted forms:
     - scalar (number, string, date): exact match
     - ``{"target": v}``: nearest match
     - ``{"start": a, "stop": b}``: value interval
     - ``ExactMatch``, ``Nearest`` or ``Interval`` instances
    """
    if isinstance(raw, (ExactMatch, Nearest, Interval)):
        return raw
    if isinstance(raw, (str, date, np.generic)) or _is_number(raw):
        return ExactMatch(value=raw)
    if isinstance(raw, Mapping):
        if "target" in raw:
            return Nearest(target=raw["target"])
        if "start" in raw and "stop" in raw:
            return Interval(start=raw["start"], stop=raw["stop"])
    raise InvalidConstraintError(f"Invalid subset constraint for {axis_name}: {raw!r}", axis=axis_name)


def _index_of(values: Sequence[Any], match: Any) -> int:
    for i, value in enumerate(values):
        if value == match:
            return i
    return -1


def _resolve_value_constraint(domain: Domain, axis_name: str, constraint: ValueConstraint) -> Any:
    values = domain.axes[axis_name].values

    # special-case handling
    iso_date = is_iso_date_axis(domain, axis_name)
    lon_wrapper = get_longitude_wrapper(domain, axis_name) if is_longitude_axis(domain, axis_name) else None

    def normalize(value: Any) -> Any:
        if iso_date:
            return as_time(value)
        if lon_wrapper is not None:
            return lon_wrapper(value)
        return value

    def check_numeric(*inputs: Any) -> None:
        if iso_date:
            return
        if lon_wrapper is not None:
            numeric = all(_is_number(v) for v in inputs)
        else:
            numeric = _is_number(values[0]) and all(_is_number(v) for v in inputs)
        if not numeric:
            raise InvalidConstraintTypeError(
                f"Invalid axis or constraint value type for {axis_name}: {inputs!r}", axis=axis_name
            )

    if iso_date:
        # compare times as numbers
        values = [as_time(v) for v in values]

    if isinstance(constraint, ExactMatch):
        if lon_wrapper is not None:
            check_numeric(constraint.value)
        i = _index_of(values, normalize(constraint.value))
        if i == -1:
            raise ValueNotFoundError(axis_name, constraint.value)
        return i

    if isinstance(constraint, Nearest):
        check_numeric(constraint.target)
        return index_of_nearest(values, normalize(constraint.target))

    check_numeric(constraint.start, constraint.stop)
    lo1, hi1 = indices_of_nearest(values, normalize(constraint.start))
    lo2, hi2 = indices_of_nearest(values, normalize(constraint.stop))
    # may include an extra index at either edge since bounds are not consulted
    imin = min(lo1, hi1, lo2, hi2)
    imax = max(lo1, hi1, lo2, hi2) + 1  # stop is exclusive
    return IndexConstraint(start=imin, stop=imax)


async def subset_coverage_by_value(cov: Coverage, constraints: RawValueConstraints) -> Coverage:
    """
    Generic ``subset_by_value`` for coverage implementations.

    Resolves value constraints into index constraints and delegates to
    ``cov.subset_by_index``.

    Raises:
        ValueNotFoundError: If an exact-match value is not on the axis
        InvalidConstraintTypeError: If the constraint does not fit the axis values
    """
    assert_is_coverage(cov)
    domain = await cov.load_domain()

    index_constraints: Dict[str, Any] = {}
    for axis_name, raw in constraints.items():
        if raw is None or axis_name not in domain.axes:
            continue
        constraint = parse_value_constraint(axis_name, raw)
        index_constraints[axis_name] = _resolve_value_constraint(domain, axis_name, constraint)

    logger.debug(f"Resolved value constraints {dict(constraints)} to {index_constraints}")
    return await cov.subset_by_index(index_constraints)


async def subset_by_bbox(cov: Coverage, bbox: BBoxTuple, axes: GridAxes = ("x", "y")) -> Coverage:
    """
    Subset a grid coverage to the bounding box ``(xmin, ymin, xmax, ymax)``.

    Every grid cell intersecting the box is included. Coordinates are in the
    native CRS of the coverage.
    """
    xmin, ymin, xmax, ymax = bbox
    x_axis, y_axis = axes
    return await cov.subset_by_value({
        x_axis: Interval(start=xmin, stop=xmax),
        y_axis: Interval(start=ymin, stop=ymax),
    })
