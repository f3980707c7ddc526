"""CovArray - lazy subsetting and transformation of coverage data."""

from ._version import __version__

from .collection import CollectionQuery, CoverageCollection
from .config import EngineConfig, get_config
from .coverage import ArrayRange, Coverage, FunctionRange, LoaderCoverage, Range, from_dataarray, from_domain
from .domain import ArrayBounds, Axis, Domain
from .errors import (
    CovArrayError,
    InvalidArgumentError,
    InvalidCategoryError,
    InvalidConstraintError,
    InvalidConstraintTypeError,
    InvalidDateError,
    NotALongitudeAxisError,
    ProjectionNotCachedError,
    TypeMismatchError,
    UnsupportedReferencingError,
    UnsupportedReprojectionError,
    ValueNotFoundError,
)
from .mask import ensure_clockwise_polygon, get_point_in_polygons_fn, mask_by_polygon
from .parameter import get_category, stringify_unit
from .referencing import (
    ProjectionCache,
    as_time,
    find_horizontal_crs,
    get_horizontal_crs_components,
    get_longitude_wrapper,
    get_projection,
    is_ellipsoidal_crs,
    is_iso_date_axis,
    is_longitude_axis,
    load_projection,
    projection_cache,
    reproject_coords,
)
from .search import index_of_nearest, indices_of_nearest
from .subset import subset_by_bbox, subset_coverage_by_index, subset_coverage_by_value, subset_domain_by_index
from .transform import (
    map_range,
    reproject,
    with_categories,
    with_derived_parameter,
    with_parameters,
    with_simple_derived_parameter,
)
from .types import (
    CRS,
    AxisDataType,
    BBoxTuple,
    Category,
    ExactMatch,
    IndexConstraint,
    Interval,
    Nearest,
    ObservedProperty,
    Parameter,
    ReferenceEntry,
    ReferenceSystem,
    Unit,
)
from .validate import assert_is_coverage, assert_is_domain, is_coverage, is_domain

__all__ = [
    "__version__",
    "CollectionQuery",
    "CoverageCollection",
    "EngineConfig",
    "get_config",
    "ArrayRange",
    "Coverage",
    "FunctionRange",
    "LoaderCoverage",
    "Range",
    "from_dataarray",
    "from_domain",
    "ArrayBounds",
    "Axis",
    "Domain",
    "CovArrayError",
    "InvalidArgumentError",
    "InvalidCategoryError",
    "InvalidConstraintError",
    "InvalidConstraintTypeError",
    "InvalidDateError",
    "NotALongitudeAxisError",
    "ProjectionNotCachedError",
    "TypeMismatchError",
    "UnsupportedReferencingError",
    "UnsupportedReprojectionError",
    "ValueNotFoundError",
    "ensure_clockwise_polygon",
    "get_point_in_polygons_fn",
    "mask_by_polygon",
    "get_category",
    "stringify_unit",
    "ProjectionCache",
    "as_time",
    "find_horizontal_crs",
    "get_horizontal_crs_components",
    "get_longitude_wrapper",
    "get_projection",
    "is_ellipsoidal_crs",
    "is_iso_date_axis",
    "is_longitude_axis",
    "load_projection",
    "projection_cache",
    "reproject_coords",
    "index_of_nearest",
    "indices_of_nearest",
    "subset_by_bbox",
    "subset_coverage_by_index",
    "subset_coverage_by_value",
    "subset_domain_by_index",
    "map_range",
    "reproject",
    "with_categories",
    "with_derived_parameter",
    "with_parameters",
    "with_simple_derived_parameter",
    "CRS",
    "AxisDataType",
    "BBoxTuple",
    "Category",
    "ExactMatch",
    "IndexConstraint",
    "Interval",
    "Nearest",
    "ObservedProperty",
    "Parameter",
    "ReferenceEntry",
    "ReferenceSystem",
    "Unit",
    "assert_is_coverage",
    "assert_is_domain",
    "is_coverage",
    "is_domain",
]
