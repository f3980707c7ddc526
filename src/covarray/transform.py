"""
Coverage transformations.

Each transformation returns a new coverage wrapping the given one. Loaders
are delegated lazily and subsetting first subsets the wrapped coverage and
then applies the same transformation again, so transformations survive
arbitrary subsetting. Inputs are never modified.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import numpy as np

from .coverage import Coverage, FunctionRange, Range
from .domain import Axis, Domain
from .errors import InvalidArgumentError, InvalidCategoryError, UnsupportedReprojectionError
from .referencing import ProjectionCache, find_horizontal_crs, get_projection, reproject_coords
from .types import HORIZONTAL_CRS_TYPES, AxisDataType, ObservedProperty, Parameter, ReferenceEntry
from .typing import IndexObject, Projection, RawIndexConstraints, RawValueConstraints, XY
from .validate import assert_is_coverage, assert_is_domain

logger = logging.getLogger(__name__)

__all__ = [
    "with_parameters",
    "with_categories",
    "map_range",
    "with_derived_parameter",
    "with_simple_derived_parameter",
    "reproject",
]

RangeMapper = Callable[[IndexObject, Range], Any]


class ParametersCoverage(Coverage):
    """Coverage with a replaced parameter catalogue."""

    def __init__(self, source: Coverage, parameters: Mapping[str, Parameter]) -> None:
        super().__init__(parameters, source.domain_type)
        self.source = source

    async def load_domain(self) -> Domain:
        return await self.source.load_domain()

    async def load_range(self, key: str) -> Range:
        return await self.source.load_range(key)

    async def load_ranges(self, keys: Optional[Iterable[str]] = None) -> Dict[str, Range]:
        return await self.source.load_ranges(list(self.parameters) if keys is None else keys)

    async def subset_by_index(self, constraints: RawIndexConstraints) -> Coverage:
        return with_parameters(await self.source.subset_by_index(constraints), self.parameters)

    async def subset_by_value(self, constraints: RawValueConstraints) -> Coverage:
        return with_parameters(await self.source.subset_by_value(constraints), self.parameters)


def with_parameters(cov: Coverage, parameters: Mapping[str, Parameter]) -> Coverage:
    """
    Return a copy of the coverage with the parameters replaced.

    This is a low-level function, the parameters are not checked against the ranges.
    """
    assert_is_coverage(cov)
    return ParametersCoverage(cov, parameters)


def with_categories(
    cov: Coverage,
    key: str,
    observed_property: Union[ObservedProperty, Mapping[str, Any]],
    mapping: Mapping[str, str],
) -> Coverage:
    """
    Return a copy of the coverage with the categories of one parameter replaced.

    The category encoding is adapted to the mapping: the encoded values of all
    source categories mapped onto the same new category are merged.

    Args:
        cov: The coverage
        key: Parameter key
        observed_property: New observed property including the new categories
        mapping: Source category id -> new category id

    Raises:
        InvalidCategoryError: If a new category has no id
    """
    assert_is_coverage(cov)
    if not isinstance(observed_property, ObservedProperty):
        observed_property = ObservedProperty.model_validate(observed_property)
    categories = observed_property.categories or []
    if any(not category.id for category in categories):
        raise InvalidCategoryError('At least one category object is missing the "id" property')
    if key not in cov.parameters:
        raise InvalidArgumentError(f"Unknown parameter '{key}'")

    parameter = cov.parameters[key]
    from_encoding = parameter.category_encoding or {}
    encoding: Dict[str, List[Any]] = {}
    for category in categories:
        values: List[Any] = []
        for from_id, to_id in mapping.items():
            if to_id == category.id and from_id in from_encoding:
                values.extend(from_encoding[from_id])
        if values:
            encoding[category.id] = values

    parameters = dict(cov.parameters)
    parameters[key] = parameter.model_copy(
        update={"observed_property": observed_property, "category_encoding": encoding}
    )
    return with_parameters(cov, parameters)


class MappedRangeCoverage(Coverage):
    """Coverage where the range of one parameter is computed from the original."""

    def __init__(self, source: Coverage, key: str, fn: RangeMapper, data_type: Optional[str] = None) -> None:
        super().__init__(source.parameters, source.domain_type)
        self.source = source
        self.key = key
        self.fn = fn
        self.data_type = data_type

    def _wrap(self, source_range: Range) -> Range:
        fn = self.fn
        return FunctionRange(
            source_range.shape,
            self.data_type or source_range.data_type,
            lambda index: fn(index, source_range),
        )

    async def load_domain(self) -> Domain:
        return await self.source.load_domain()

    async def load_range(self, key: str) -> Range:
        source_range = await self.source.load_range(key)
        return self._wrap(source_range) if key == self.key else source_range

    async def load_ranges(self, keys: Optional[Iterable[str]] = None) -> Dict[str, Range]:
        ranges = await self.source.load_ranges(keys)
        return {
            key: self._wrap(source_range) if key == self.key else source_range
            for key, source_range in ranges.items()
        }

    async def subset_by_index(self, constraints: RawIndexConstraints) -> Coverage:
        return map_range(await self.source.subset_by_index(constraints), self.key, self.fn, self.data_type)

    async def subset_by_value(self, constraints: RawValueConstraints) -> Coverage:
        return map_range(await self.source.subset_by_value(constraints), self.key, self.fn, self.data_type)


def map_range(cov: Coverage, key: str, fn: RangeMapper, data_type: Optional[str] = None) -> Coverage:
    """
    Return a copy of the coverage with the range values of one parameter mapped.

    Args:
        cov: The coverage
        key: Key of the parameter to map
        fn: Called as ``fn(index, range)`` with the original range
        data_type: New range data type, defaults to the original one
    """
    assert_is_coverage(cov)
    return MappedRangeCoverage(cov, key, fn, data_type)


class DerivedParameterCoverage(Coverage):
    """Coverage with an extra parameter computed from other parameters."""

    def __init__(
        self,
        source: Coverage,
        parameter: Parameter,
        input_parameters: Sequence[str],
        fn: Callable[..., Any],
        data_type: str,
    ) -> None:
        parameters = dict(source.parameters)
        parameters[parameter.key] = parameter
        super().__init__(parameters, source.domain_type)
        self.source = source
        self.parameter = parameter
        self.input_parameters = list(input_parameters)
        self.fn = fn
        self.data_type = data_type

    async def _load_derived_range(self) -> Range:
        input_ranges = await self.source.load_ranges(self.input_parameters)
        ranges = [input_ranges[key] for key in self.input_parameters]
        fn = self.fn
        # all input ranges are assumed to have the same shape
        return FunctionRange(ranges[0].shape, self.data_type, lambda index: fn(index, *ranges))

    async def load_domain(self) -> Domain:
        return await self.source.load_domain()

    async def load_range(self, key: str) -> Range:
        if key == self.parameter.key:
            return await self._load_derived_range()
        return await self.source.load_range(key)

    async def subset_by_index(self, constraints: RawIndexConstraints) -> Coverage:
        return self._rewrap(await self.source.subset_by_index(constraints))

    async def subset_by_value(self, constraints: RawValueConstraints) -> Coverage:
        return self._rewrap(await self.source.subset_by_value(constraints))

    def _rewrap(self, source: Coverage) -> Coverage:
        return DerivedParameterCoverage(source, self.parameter, self.input_parameters, self.fn, self.data_type)


def with_derived_parameter(
    cov: Coverage,
    parameter: Union[Parameter, Mapping[str, Any]],
    input_parameters: Sequence[str],
    fn: Callable[..., Any],
    data_type: str = "float",
) -> Coverage:
    """
    Return a copy of the coverage with a parameter derived from other parameters.

    Args:
        cov: The coverage
        parameter: Descriptor of the new parameter
        input_parameters: Keys of the input parameters, their ranges must have equal shapes
        fn: Called as ``fn(index, *input_ranges)``
        data_type: Range data type of the new parameter

    Examples:
        >>> derived = with_derived_parameter(
        ...     cov,
        ...     parameter={"key": "speed"},
        ...     input_parameters=["u", "v"],
        ...     fn=lambda index, u, v: math.hypot(u.get(index), v.get(index)),
        ... )
    """
    assert_is_coverage(cov)
    if not isinstance(parameter, Parameter):
        parameter = Parameter.model_validate(parameter)
    if not input_parameters:
        raise InvalidArgumentError("At least one input parameter is required")
    missing = [key for key in input_parameters if key not in cov.parameters]
    if missing:
        raise InvalidArgumentError(f"Unknown input parameters: {missing}")
    return DerivedParameterCoverage(cov, parameter, input_parameters, fn, data_type)


def with_simple_derived_parameter(
    cov: Coverage,
    parameter: Union[Parameter, Mapping[str, Any]],
    input_parameters: Sequence[str],
    fn: Callable[..., Any],
    data_type: str = "float",
) -> Coverage:
    """
    Like :func:`with_derived_parameter` but ``fn`` gets the input values.

    ``fn(*values)`` is only called when no input value is None, otherwise
    the derived value is None.
    """

    def derive(index: IndexObject, *ranges: Range) -> Any:
        values = [r.get(index) for r in ranges]
        if any(value is None for value in values):
            return None
        return fn(*values)

    return with_derived_parameter(cov, parameter, input_parameters, derive, data_type)


# Reprojection


class ReprojectedCoverage(Coverage):
    """Coverage with reprojected horizontal coordinates, ranges are unchanged."""

    def __init__(
        self,
        source: Coverage,
        domain: Domain,
        reference_domain: Domain,
        cache: Optional[ProjectionCache] = None,
    ) -> None:
        super().__init__(source.parameters, source.domain_type)
        self.source = source
        self._domain = domain
        self.reference_domain = reference_domain
        self.cache = cache

    async def load_domain(self) -> Domain:
        return self._domain

    async def load_range(self, key: str) -> Range:
        return await self.source.load_range(key)

    async def load_ranges(self, keys: Optional[Iterable[str]] = None) -> Dict[str, Range]:
        return await self.source.load_ranges(keys)

    async def subset_by_index(self, constraints: RawIndexConstraints) -> Coverage:
        subset = await self.source.subset_by_index(constraints)
        return await reproject(subset, self.reference_domain, self.cache)

    async def subset_by_value(self, constraints: RawValueConstraints) -> Coverage:
        subset = await self.source.subset_by_value(constraints)
        return await reproject(subset, self.reference_domain, self.cache)


def _reproject_tuples(
    values: Any,
    x_index: int,
    y_index: int,
    source: Projection,
    target: Projection,
) -> Any:
    if isinstance(values, np.ndarray):
        reprojected = np.array(values, dtype=float, copy=True)
        for row in reprojected:
            x, y = reproject_coords(XY(row[x_index], row[y_index]), source, target)
            row[x_index] = x
            row[y_index] = y
        return reprojected

    result = []
    for point in values:
        coords = list(point)
        x, y = reproject_coords(XY(coords[x_index], coords[y_index]), source, target)
        coords[x_index] = x
        coords[y_index] = y
        result.append(tuple(coords) if isinstance(point, tuple) else coords)
    return result


def _find_composite_axis(domain: Domain, components: Sequence[str]) -> Axis:
    for axis in domain.axes.values():
        if all(component in axis.components for component in components):
            return axis
    raise UnsupportedReprojectionError(f"No composite axis carries the components {list(components)}")


def _find_2d_horizontal_crs(domain: Domain) -> ReferenceEntry:
    if any(
        ref.system.type in HORIZONTAL_CRS_TYPES and len(ref.components) > 2
        for ref in domain.referencing
    ):
        raise UnsupportedReprojectionError("Reprojection not supported for >2D CRSs")
    return find_horizontal_crs(domain)


async def reproject(
    cov: Coverage,
    reference_domain: Domain,
    cache: Optional[ProjectionCache] = None,
) -> Coverage:
    """
    Reproject a coverage into the horizontal CRS of a reference domain.

    The horizontal CRS of the coverage is replaced and its horizontal
    coordinates are reprojected by unprojecting to lon/lat and projecting
    to the target CRS.

    Current limitations:
     - only point-tuple composite axes are supported, not polygons or grids
     - only horizontal CRSs with at most two components are supported
     - non lon/lat CRSs must be loaded first with ``load_projection``

    Raises:
        UnsupportedReprojectionError: If one of the limitations applies
    """
    assert_is_coverage(cov)
    assert_is_domain(reference_domain)
    source_domain = await cov.load_domain()

    source_ref = _find_2d_horizontal_crs(source_domain)
    if len(source_ref.components) < 2:
        raise UnsupportedReprojectionError(f"Horizontal CRS needs two components, got {source_ref.components}")
    # the CRS components must not be grid axes
    if any(component in source_domain.axes for component in source_ref.components):
        raise UnsupportedReprojectionError("Grid reprojection not supported yet")

    target_ref = _find_2d_horizontal_crs(reference_domain)

    x_component, y_component = source_ref.components
    axis = _find_composite_axis(source_domain, source_ref.components)
    if axis.data_type != AxisDataType.TUPLE:
        raise UnsupportedReprojectionError(f"Unsupported data type: {axis.data_type.value}")

    source_projection = get_projection(source_domain, cache)
    target_projection = get_projection(reference_domain, cache)

    values = _reproject_tuples(
        axis.values,
        axis.component_index(x_component),
        axis.component_index(y_component),
        source_projection,
        target_projection,
    )
    logger.debug(
        f"Reprojected {len(values)} values of axis '{axis.key}' from {source_ref.system.id} to {target_ref.system.id}"
    )

    # TODO reproject bounds instead of dropping them
    new_axis = axis.model_copy(update={"values": values, "bounds": None})
    referencing = [
        ReferenceEntry(components=ref.components, system=target_ref.system) if ref is source_ref else ref
        for ref in source_domain.referencing
    ]
    domain = source_domain.model_copy(update={
        "axes": {**source_domain.axes, axis.key: new_axis},
        "referencing": referencing,
    })
    return ReprojectedCoverage(cov, domain, reference_domain, cache)
