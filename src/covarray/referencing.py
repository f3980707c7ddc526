"""
Referencing lookups, projections and longitude handling.

A projection converts between geodetic lon/lat and the x/y values of a
horizontal CRS. For lon/lat CRSs a built-in projection wraps longitudes into
the longitude window used by the domain (for example [0, 360]) which makes
intercomparison between coverages easier. Other CRSs are resolved through a
cache of pyproj-backed projections that must be populated with
:func:`load_projection` first.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

import pyproj
from pyproj.exceptions import CRSError
from pyproj.network import is_network_enabled, set_network_enabled
from pyproj.transformer import Transformer

from .config import EngineConfig, get_config
from .domain import Domain
from .errors import (
    CovArrayError,
    InvalidDateError,
    NotALongitudeAxisError,
    ProjectionNotCachedError,
    UnsupportedReferencingError,
)
from .types import (
    GEOGRAPHIC_CRS_IDS,
    HORIZONTAL_CRS_TYPES,
    LONGITUDE_AXIS_INDEX,
    AxisDataType,
    ReferenceEntry,
    ReferenceSystem,
)
from .typing import LonLat, Projection, ProjectionStore, XY

logger = logging.getLogger(__name__)

_OGC_CRS_URI = re.compile(r"^https?://www\.opengis\.net/def/crs/([^/]+)/[^/]+/([^/]+)/?$")
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


# Reference lookups


def find_reference_for(domain: Domain, component: str) -> Optional[ReferenceEntry]:
    """Return the referencing entry containing ``component``, or None."""
    for ref in domain.referencing:
        if component in ref.components:
            return ref
    return None


def find_horizontal_crs(domain: Domain, required: bool = True) -> Optional[ReferenceEntry]:
    """
    Return the referencing entry of the horizontal CRS of the domain.

    A horizontal CRS is geodetic (typically lat/lon), geocentric or projected.
    Entries with more than two components (e.g. including height) are not
    considered.

    Args:
        domain: Coverage domain
        required: Raise instead of returning None when no horizontal CRS exists

    Raises:
        UnsupportedReferencingError: If several horizontal CRSs are bound, or
            none is and ``required`` is set
    """
    refs = [
        ref for ref in domain.referencing
        if ref.system.type in HORIZONTAL_CRS_TYPES and len(ref.components) <= 2
    ]
    if len(refs) > 1:
        raise UnsupportedReferencingError(
            f"Ambiguous horizontal CRS, found {len(refs)}: {[ref.system.id for ref in refs]}"
        )
    if not refs:
        if required:
            raise UnsupportedReferencingError("No horizontal CRS found in coverage domain")
        return None
    return refs[0]


def get_horizontal_crs_components(domain: Domain) -> Sequence[str]:
    """
    Return the component names of the horizontal CRS of the domain.

    Examples:
        >>> x_comp, y_comp = get_horizontal_crs_components(domain)
    """
    ref = find_horizontal_crs(domain)
    return ref.components


def is_ellipsoidal_crs(system: ReferenceSystem) -> bool:
    """Whether horizontal positions in ``system`` are geodetic latitude and longitude."""
    return system.type == "GeographicCRS" or system.id in GEOGRAPHIC_CRS_IDS


# Projections


def wrap_longitude(lon: float, window_min: float, window_max: float) -> float:
    """Wrap ``lon`` into ``[window_min, window_max]``, a 360 degree window."""
    if window_min <= lon <= window_max:
        # unchanged to avoid introducing rounding errors
        return lon
    return math.fmod(math.fmod(lon - window_min, 360) + 360, 360) + window_min


def _longitude_window(lon_min: float, lon_max: float) -> tuple:
    lon_mid = (lon_max + lon_min) / 2
    return lon_mid - 180, lon_mid + 180


def _iter_composite_longitudes(values: Iterable[Any], data_type: AxisDataType, index: int) -> Iterable[float]:
    if data_type == AxisDataType.TUPLE:
        for point in values:
            yield point[index]
    elif data_type == AxisDataType.POLYGON:
        for polygon in values:
            for ring in polygon:
                for point in ring:
                    yield point[index]
    else:
        raise UnsupportedReferencingError(f"Unsupported data type: {data_type}")


def _longitude_extent(domain: Domain, lon_component: str) -> tuple:
    if lon_component in domain.axes:
        values = domain.axes[lon_component].values
        lon_min, lon_max = values[0], values[len(values) - 1]
        if lon_min > lon_max:
            lon_min, lon_max = lon_max, lon_min
        return lon_min, lon_max

    # longitude is a component of a composite axis
    axis = next(
        (axis for axis in domain.axes.values() if lon_component in axis.components),
        None,
    )
    if axis is None:
        raise UnsupportedReferencingError(f"No axis carries the longitude component '{lon_component}'")

    index = axis.component_index(lon_component)
    lon_min = math.inf
    lon_max = -math.inf
    for lon in _iter_composite_longitudes(axis.values, axis.data_type, index):
        lon_min = min(lon, lon_min)
        lon_max = max(lon, lon_max)
    logger.debug(f"Scanned {len(axis.values)} values of axis '{axis.key}' for longitude extent")
    return lon_min, lon_max


class LonLatProjection:
    """Projection of lon/lat CRSs that wraps longitudes into the domain's window."""

    def __init__(self, lon_index: int, lon_min: float, lon_max: float) -> None:
        if lon_index not in (0, 1):
            raise UnsupportedReferencingError(f"Longitude must be the first or second axis, got {lon_index}")
        self.lon_index = lon_index
        self.window_min, self.window_max = _longitude_window(lon_min, lon_max)

    @classmethod
    def from_domain(cls, domain: Domain, ref: ReferenceEntry) -> "LonLatProjection":
        # a GeographicCRS without a known identifier is taken as lon-lat ordered
        lon_index = LONGITUDE_AXIS_INDEX.get(ref.system.id, 0)
        if lon_index >= len(ref.components):
            raise UnsupportedReferencingError(
                f"Referencing {ref.components} has no component at longitude position {lon_index}"
            )
        lon_min, lon_max = _longitude_extent(domain, ref.components[lon_index])
        return cls(lon_index, lon_min, lon_max)

    def project(self, position: LonLat) -> XY:
        lon = wrap_longitude(position.lon, self.window_min, self.window_max)
        if self.lon_index == 0:
            return XY(lon, position.lat)
        return XY(position.lat, lon)

    def unproject(self, position: XY) -> LonLat:
        if self.lon_index == 0:
            return LonLat(position.x, position.y)
        return LonLat(position.y, position.x)


class PyProjProjection:
    """Projection between WGS84 lon/lat and an arbitrary CRS using pyproj."""

    def __init__(self, crs: pyproj.CRS) -> None:
        self.crs = crs
        self._forward = Transformer.from_crs("EPSG:4326", crs, always_xy=True)
        self._inverse = Transformer.from_crs(crs, "EPSG:4326", always_xy=True)

    @classmethod
    def from_crs_id(cls, crs_id: str) -> "PyProjProjection":
        return cls(to_pyproj_crs(crs_id))

    def project(self, position: LonLat) -> XY:
        x, y = self._forward.transform(position.lon, position.lat)
        return XY(x, y)

    def unproject(self, position: XY) -> LonLat:
        lon, lat = self._inverse.transform(position.x, position.y)
        return LonLat(lon, lat)


def to_pyproj_crs(crs_id: str) -> pyproj.CRS:
    """
    Create a pyproj CRS from an OGC CRS URI or any string pyproj understands.

    Args:
        crs_id: CRS identifier
         - URI: "http://www.opengis.net/def/crs/EPSG/0/27700"
         - string: "EPSG:27700"
    """
    match = _OGC_CRS_URI.match(crs_id)
    user_input = f"{match.group(1)}:{match.group(2)}" if match else crs_id
    try:
        return pyproj.CRS.from_user_input(user_input)
    except CRSError as exc:
        raise UnsupportedReferencingError(f"Unsupported CRS: {crs_id}", cause=exc) from exc


class ProjectionCache:
    """Projections by CRS identifier, filled by explicit (remote) loads."""

    def __init__(self) -> None:
        self._projections: Dict[str, Projection] = {}

    def lookup(self, crs_id: str) -> Optional[Projection]:
        return self._projections.get(crs_id)

    def register(self, crs_id: str, projection: Projection) -> None:
        self._projections[crs_id] = projection

    async def load_remote(self, crs_id: str, config: Optional[EngineConfig] = None) -> Projection:
        """
        Resolve the projection definition of ``crs_id`` and cache it.

        Resolution runs in a worker thread since PROJ may read its database or
        fetch grids from the network. If network access is configured it is
        enabled for the duration of the load and the previous PROJ setting is
        restored afterwards.
        """
        cached = self.lookup(crs_id)
        if cached is not None:
            return cached

        options = get_config(config).projection_kwargs()
        network_was_enabled = is_network_enabled()
        if options["network"]:
            set_network_enabled(active=True)

        logger.debug(f"Loading projection definition for {crs_id}")
        try:
            projection = await asyncio.wait_for(
                asyncio.to_thread(PyProjProjection.from_crs_id, crs_id),
                timeout=options["timeout"],
            )
        except asyncio.TimeoutError as exc:
            raise CovArrayError(f"Timed out loading projection {crs_id}", cause=exc) from exc
        finally:
            if options["network"] and not network_was_enabled:
                set_network_enabled(active=False)

        self.register(crs_id, projection)
        return projection


projection_cache = ProjectionCache()


def get_projection(domain: Domain, cache: Optional[ProjectionStore] = None) -> Projection:
    """
    Return a projection for the horizontal CRS of the domain.

    For lon/lat CRSs this is a :class:`LonLatProjection`. Other CRSs must
    already be cached, see :func:`load_projection`.

    Raises:
        UnsupportedReferencingError: If the domain has no usable horizontal CRS
        ProjectionNotCachedError: If the CRS projection has not been loaded
    """
    ellipsoidal = next((ref for ref in domain.referencing if is_ellipsoidal_crs(ref.system)), None)
    if ellipsoidal is not None:
        return LonLatProjection.from_domain(domain, ellipsoidal)

    ref = find_horizontal_crs(domain)
    cache = cache if cache is not None else projection_cache
    crs_id = ref.system.id
    projection = cache.lookup(crs_id) if crs_id else None
    if projection is None:
        raise ProjectionNotCachedError(crs_id)
    return projection


async def load_projection(
    domain: Domain,
    cache: Optional[ProjectionStore] = None,
    config: Optional[EngineConfig] = None,
) -> Projection:
    """
    Like :func:`get_projection` but loads uncached projection definitions.

    On success the projection is cached and later available via
    :func:`get_projection`.
    """
    cache = cache if cache is not None else projection_cache
    try:
        return get_projection(domain, cache)
    except ProjectionNotCachedError as exc:
        if exc.crs_id is None:
            raise UnsupportedReferencingError("Horizontal CRS has no identifier", cause=exc) from exc
        return await cache.load_remote(exc.crs_id, config)


def reproject_coords(position: XY, from_projection: Projection, to_projection: Projection) -> XY:
    """Reproject a position from one projection to another via lon/lat."""
    return to_projection.project(from_projection.unproject(position))


# Axis classification


def is_longitude_axis(domain: Domain, axis_name: str) -> bool:
    """Return whether the given domain axis represents longitudes."""
    ref = find_reference_for(domain, axis_name)
    if ref is None:
        return False

    crs_id = ref.system.id
    # also covers systems without an identifier
    if crs_id not in GEOGRAPHIC_CRS_IDS:
        return False

    return LONGITUDE_AXIS_INDEX[crs_id] == ref.components.index(axis_name)


def get_longitude_wrapper(domain: Domain, axis_name: str) -> Callable[[float], float]:
    """
    Return a function converting any longitude into the domain axis's window.

    Only primitive axes are supported. The window is the axis extent widened
    equally on both sides to 360 degrees.

    For example, for an axis within [0, 360] an input of -70 becomes 290
    and every longitude within [0, 360] is returned unchanged. For an axis
    within [10, 50] the window is [-150, 210] and -170 becomes 190.

    Raises:
        NotALongitudeAxisError: If the axis is not a longitude axis
    """
    if not is_longitude_axis(domain, axis_name) or axis_name not in domain.axes:
        raise NotALongitudeAxisError(axis_name)

    values = domain.axes[axis_name].values
    lon_min, lon_max = values[0], values[len(values) - 1]
    if lon_min > lon_max:
        lon_min, lon_max = lon_max, lon_min
    window_min, window_max = _longitude_window(lon_min, lon_max)

    def wrapper(lon: float) -> float:
        return wrap_longitude(lon, window_min, window_max)

    return wrapper


def as_time(value: Any) -> int:
    """
    Convert an ISO 8601 string or a date into epoch milliseconds.

    Date-times without offset and plain dates are taken as UTC.

    Raises:
        InvalidDateError: If the value is not a string or date, or unparsable
    """
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise InvalidDateError(value, cause=exc) from exc
    elif isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        raise InvalidDateError(value)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return (parsed - _EPOCH) // timedelta(milliseconds=1)


def is_iso_date_axis(domain: Domain, axis_name: str) -> bool:
    """Return whether the axis values are ISO 8601 date strings."""
    value = domain.axes[axis_name].values[0]
    if not isinstance(value, str):
        return False
    try:
        as_time(value)
    except InvalidDateError:
        return False
    return True
