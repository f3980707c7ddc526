"""
Coverage and range abstractions.

A coverage pairs a domain with parameters whose values are exposed through
lazily loaded ranges. Loading happens in coroutines; once a domain or range
is resolved every lookup is synchronous.
"""

from __future__ import annotations

import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np
import xarray as xr

from .config import EngineConfig, get_config
from .domain import Axis, Domain
from .errors import InvalidArgumentError
from .types import (
    COVERAGE,
    CRS,
    Category,
    ObservedProperty,
    Parameter,
    ReferenceEntry,
    ReferenceSystem,
)
from .typing import DomainLoader, IndexObject, RangeGetter, RangeLoader, RawIndexConstraints, RawValueConstraints, Shape
from .validate import assert_is_domain

logger = logging.getLogger(__name__)

__all__ = [
    "Range",
    "FunctionRange",
    "ArrayRange",
    "Coverage",
    "LoaderCoverage",
    "from_domain",
    "from_dataarray",
]


class Range(ABC):
    """Value lookup of one parameter over the index space of a domain."""

    shape: Shape
    data_type: str

    @abstractmethod
    def get(self, index: IndexObject) -> Any:
        """Return the value at ``index`` or None for no data; missing axes default to 0."""


class FunctionRange(Range):
    """Range whose values are computed by a function of the index object."""

    def __init__(self, shape: Shape, data_type: str, getter: RangeGetter) -> None:
        self.shape = shape
        self.data_type = data_type
        self._getter = getter

    def get(self, index: IndexObject) -> Any:
        return self._getter(index)


class ArrayRange(Range):
    """Range backed by an in-memory numpy array with named dimensions."""

    def __init__(self, values: np.ndarray, dims: Sequence[str], shape: Shape, data_type: str) -> None:
        if values.ndim != len(dims):
            raise InvalidArgumentError(
                f"Array has {values.ndim} dimensions but {len(dims)} dimension names were given"
            )
        self.values = values
        self.dims = tuple(dims)
        self.shape = shape
        self.data_type = data_type

    def get(self, index: IndexObject) -> Any:
        value = self.values[tuple(index.get(dim) or 0 for dim in self.dims)]
        if isinstance(value, np.generic):
            value = value.item()
        if isinstance(value, float) and math.isnan(value):
            return None
        return value


class Coverage(ABC):
    """
    Abstract coverage.

    Subclasses provide ``load_domain`` and ``load_range``; ranges of several
    parameters and the generic subsetting operations are derived from those.
    """

    type = COVERAGE

    def __init__(self, parameters: Mapping[str, Parameter], domain_type: Optional[str] = None) -> None:
        self.parameters: Dict[str, Parameter] = dict(parameters)
        self.domain_type = domain_type

    @abstractmethod
    async def load_domain(self) -> Domain:
        """Load the domain of this coverage."""

    @abstractmethod
    async def load_range(self, key: str) -> Range:
        """Load the range of the parameter ``key``."""

    async def load_ranges(self, keys: Optional[Iterable[str]] = None) -> Dict[str, Range]:
        """Load the ranges of ``keys`` (default: all parameters), keeping their order."""
        key_list = list(self.parameters) if keys is None else list(keys)
        ranges = await asyncio.gather(*(self.load_range(key) for key in key_list))
        return dict(zip(key_list, ranges))

    async def subset_by_index(self, constraints: RawIndexConstraints) -> "Coverage":
        """Return a coverage restricted to the given index constraints per axis."""
        from .subset import subset_coverage_by_index

        return await subset_coverage_by_index(self, constraints)

    async def subset_by_value(self, constraints: RawValueConstraints) -> "Coverage":
        """Return a coverage restricted to the given value constraints per axis."""
        from .subset import subset_coverage_by_value

        return await subset_coverage_by_value(self, constraints)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(parameters={list(self.parameters)}, domain_type={self.domain_type!r})"


class LoaderCoverage(Coverage):
    """Coverage built from a domain loader and a range loader coroutine function."""

    def __init__(
        self,
        parameters: Mapping[str, Parameter],
        domain_loader: DomainLoader,
        range_loader: RangeLoader,
        domain_type: Optional[str] = None,
    ) -> None:
        super().__init__(parameters, domain_type)
        self._domain_loader = domain_loader
        self._range_loader = range_loader

    async def load_domain(self) -> Domain:
        domain = await self._domain_loader()
        assert_is_domain(domain)
        return domain

    async def load_range(self, key: str) -> Range:
        if key not in self.parameters:
            raise InvalidArgumentError(f"Unknown parameter '{key}'")
        return await self._range_loader(key)


def _resolved(value: Any) -> Callable[..., Any]:
    async def loader(*args: Any) -> Any:
        return value

    return loader


# User-friendly constructors


def from_domain(
    domain: Domain,
    grid_axes: Optional[Sequence[str]] = None,
    config: Optional[EngineConfig] = None,
) -> Coverage:
    """
    Wrap a domain into a coverage with a single categorical parameter.

    Grid domains get a checkerboard pattern to make grid cells visible,
    other domains a constant value.

    Args:
        domain: The domain to wrap
        grid_axes: Horizontal grid axis keys, defaults to the configured ones
        config: Engine configuration

    Returns:
        Coverage with a parameter ``"domain"``
    """
    assert_is_domain(domain)
    x, y = grid_axes or get_config(config).grid_axes

    key = "domain"
    assume_grid = (
        x in domain.axes
        and y in domain.axes
        and (len(domain.axes[x].values) > 1 or len(domain.axes[y].values) > 1)
    )
    a_value, b_value = 0, 1
    if assume_grid:
        categories = [Category(id="a", label={"en": "A"}), Category(id="b", label={"en": "B"})]
        encoding: Dict[str, List[Any]] = {"a": [a_value], "b": [b_value]}

        def get(index: IndexObject) -> int:
            return a_value if ((index.get(x) or 0) + (index.get(y) or 0)) % 2 else b_value
    else:
        categories = [Category(id="a", label={"en": "X"})]
        encoding = {"a": [a_value]}

        def get(index: IndexObject) -> int:
            return a_value

    parameter = Parameter(
        key=key,
        observed_property=ObservedProperty(label={"en": "Domain"}, categories=categories),
        category_encoding=encoding,
    )
    data_range = FunctionRange(domain.shape, "integer", get)
    return LoaderCoverage(
        {key: parameter},
        domain_loader=_resolved(domain),
        range_loader=_resolved(data_range),
        domain_type=domain.domain_type,
    )


def _axis_values(values: np.ndarray) -> Union[np.ndarray, List[Any]]:
    values = np.atleast_1d(values)
    if np.issubdtype(values.dtype, np.datetime64):
        return [str(v) for v in np.datetime_as_string(values, unit="ms", timezone="UTC")]
    if values.dtype.kind in ("U", "S", "O"):
        return values.tolist()
    return values


def _default_referencing(axes: Mapping[str, Axis], time_axis: str) -> List[ReferenceEntry]:
    referencing = []
    if "x" in axes and "y" in axes:
        referencing.append(ReferenceEntry(
            components=("x", "y"),
            system=ReferenceSystem(type="GeographicCRS", id=CRS.CRS84.value),
        ))
    if time_axis in axes:
        referencing.append(ReferenceEntry(
            components=(time_axis,),
            system=ReferenceSystem(type="TemporalRS", calendar="Gregorian"),
        ))
    return referencing


def from_dataarray(
    array: xr.DataArray,
    parameter: Optional[Union[Parameter, Mapping[str, Any]]] = None,
    referencing: Optional[Sequence[Union[ReferenceEntry, Mapping[str, Any]]]] = None,
    domain_type: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> Coverage:
    """
    Create a single-parameter coverage from an xarray ``DataArray``.

    Dimensions become primitive axes (their coordinates, or ``0..n-1`` when a
    dimension has none); scalar and 1D non-dimension coordinates become
    additional axes. Datetime coordinates become ISO 8601 strings.

    Array values are only read when the range is loaded, so dask-backed
    arrays stay lazy until then. NaN values read as None.

    Args:
        array: Labelled array with primitive coordinates
        parameter: Parameter descriptor, default key comes from the configuration
        referencing: Referencing entries, defaults to CRS84 for ``x``/``y`` and
            a Gregorian temporal system for the time axis
        domain_type: Domain type, e.g. ``"Grid"``
        config: Engine configuration

    Examples:
        >>> arr = xr.DataArray(
        ...     [[1, 2, 3], [4, 5, 6]],
        ...     dims=("y", "x"),
        ...     coords={"y": [10, 12], "x": [100, 101, 102]},
        ... )
        >>> cov = from_dataarray(arr, parameter={"key": "temperature"})
    """
    settings = get_config(config)

    if parameter is None:
        parameter = Parameter(
            key=settings.default_parameter_key,
            observed_property=ObservedProperty(label={"en": "Parameter 1"}),
        )
    elif not isinstance(parameter, Parameter):
        parameter = Parameter.model_validate(parameter)

    axes: Dict[str, Axis] = {}
    for dim in array.dims:
        name = str(dim)
        if dim in array.coords:
            values = _axis_values(array.coords[dim].values)
        else:
            values = np.arange(array.sizes[dim])
        axes[name] = Axis(key=name, values=values)
    for name, coord in array.coords.items():
        name = str(name)
        if name in axes or coord.ndim > 1:
            continue
        axes[name] = Axis(key=name, values=_axis_values(coord.values))

    if referencing is None:
        refs = _default_referencing(axes, settings.time_axis)
    else:
        refs = [ref if isinstance(ref, ReferenceEntry) else ReferenceEntry.model_validate(ref) for ref in referencing]

    domain = Domain(domain_type=domain_type, axes=axes, referencing=refs)
    data_type = "integer" if np.issubdtype(array.dtype, np.integer) else "float"
    dims = [str(dim) for dim in array.dims]

    async def load_range(key: str) -> Range:
        logger.debug(f"Reading {array.size} values of parameter '{key}'")
        values = await asyncio.to_thread(lambda: np.asarray(array.values))
        return ArrayRange(values, dims, domain.shape, data_type)

    return LoaderCoverage(
        {parameter.key: parameter},
        domain_loader=_resolved(domain),
        range_loader=load_range,
        domain_type=domain_type,
    )
