"""
Polygon masking of grid coverages.

Point-in-polygon tests use the PNPOLY even-odd ray casting rule, which
works for closed and unclosed rings alike. Masking evaluates it once per
grid cell into a bitmap of shape ``(len(x), len(y))``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from .config import EngineConfig, get_config
from .coverage import Coverage, Range
from .domain import Domain
from .errors import InvalidArgumentError
from .transform import map_range
from .typing import GridAxes, IndexObject, RawIndexConstraints, RawValueConstraints
from .validate import assert_is_coverage

logger = logging.getLogger(__name__)

__all__ = [
    "ensure_clockwise_polygon",
    "pnpoly",
    "get_point_in_polygons_fn",
    "polygon_grid_mask",
    "mask_by_polygon",
]

Ring = Sequence[Sequence[float]]
PolygonRings = Sequence[Ring]


def ring_signed_area(ring: Ring) -> float:
    """Twice the signed ring area, positive for clockwise rings (x right, y up)."""
    area = 0.0
    for i in range(len(ring)):
        x1, y1 = ring[i - 1][0], ring[i - 1][1]
        x2, y2 = ring[i][0], ring[i][1]
        area += (x2 - x1) * (y2 + y1)
    return area


def ensure_clockwise_polygon(rings: PolygonRings) -> List[List[List[float]]]:
    """
    Return a copy of the polygon rings with the exterior ring ordered
    clockwise and all interior rings anti-clockwise.

    Coordinates must be in longitude-latitude order.
    """
    result = []
    for i, ring in enumerate(rings):
        points = [list(point) for point in ring]
        clockwise = ring_signed_area(points) > 0
        # first ring = exterior
        if clockwise != (i == 0):
            points.reverse()
        result.append(points)
    return result


def pnpoly(x: float, y: float, vertx: Sequence[float], verty: Sequence[float]) -> bool:
    """
    Even-odd point-in-polygon test for a single ring.

    Based on https://wrf.ecse.rpi.edu/Research/Short_Notes/pnpoly.html
    """
    inside = False
    nvert = len(vertx)
    j = nvert - 1
    for i in range(nvert):
        if (verty[i] > y) != (verty[j] > y) and (
            x < (vertx[j] - vertx[i]) * (y - verty[i]) / (verty[j] - verty[i]) + vertx[i]
        ):
            inside = not inside
        j = i
    return inside


def _ring_vertices(ring: Ring) -> tuple:
    return [float(point[0]) for point in ring], [float(point[1]) for point in ring]


def get_point_in_polygons_fn(polygons: Sequence[PolygonRings]) -> Callable[[Sequence[float]], int]:
    """
    Preprocess polygons to answer the point-in-polygon question.

    Returns:
        ``classify(point)`` giving the index of the first polygon containing
        the point, or -1 if it is in none
    """
    prepared = [[_ring_vertices(ring) for ring in polygon] for polygon in polygons]

    def classify(point: Sequence[float]) -> int:
        x, y = float(point[0]), float(point[1])
        for i, rings in enumerate(prepared):
            inside = False
            for vertx, verty in rings:
                # holes flip membership under the even-odd rule
                inside ^= pnpoly(x, y, vertx, verty)
            if inside:
                return i
        return -1

    return classify


def polygon_grid_mask(polygons: Sequence[PolygonRings], x: Sequence[float], y: Sequence[float]) -> np.ndarray:
    """
    Vectorised PNPOLY over the grid ``x`` times ``y``.

    Gives the same result as calling ``get_point_in_polygons_fn(polygons)``
    for every grid point.

    Returns:
        Boolean array of shape ``(len(x), len(y))``, True inside any polygon
    """
    xs, ys = np.meshgrid(np.asarray(x, dtype=float), np.asarray(y, dtype=float), indexing="ij")
    mask = np.zeros(xs.shape, dtype=bool)

    for polygon in polygons:
        inside = np.zeros(xs.shape, dtype=bool)
        for ring in polygon:
            vertx, verty = _ring_vertices(ring)
            j = len(vertx) - 1
            for i in range(len(vertx)):
                crosses = (verty[i] > ys) != (verty[j] > ys)
                if verty[j] != verty[i]:
                    with np.errstate(invalid="ignore", over="ignore"):
                        x_cross = (vertx[j] - vertx[i]) * (ys - verty[i]) / (verty[j] - verty[i]) + vertx[i]
                    inside ^= crosses & (xs < x_cross)
                j = i
        mask |= inside
    return mask


def _as_multipolygon(polygon: Any) -> List[PolygonRings]:
    if hasattr(polygon, "__geo_interface__"):
        polygon = polygon.__geo_interface__
    if not isinstance(polygon, Mapping):
        raise InvalidArgumentError(f"Expected a GeoJSON Polygon or MultiPolygon, got {type(polygon).__name__}")

    geometry_type = polygon.get("type")
    if geometry_type == "Polygon":
        return [polygon["coordinates"]]
    if geometry_type == "MultiPolygon":
        return list(polygon["coordinates"])
    raise InvalidArgumentError(f"Expected a GeoJSON Polygon or MultiPolygon, got {geometry_type}")


class MaskedCoverage(Coverage):
    """
    Coverage whose range values outside a polygon read as None.

    The mask is bound to the grid it was computed on, subsets are masked
    again against their own grid.
    """

    def __init__(
        self,
        source: Coverage,
        masked: Coverage,
        polygons: Sequence[PolygonRings],
        axes: Sequence[str],
    ) -> None:
        super().__init__(source.parameters, source.domain_type)
        self.source = source
        self.masked = masked
        self.polygons = polygons
        self.axes = tuple(axes)

    async def load_domain(self) -> Domain:
        return await self.masked.load_domain()

    async def load_range(self, key: str) -> Range:
        return await self.masked.load_range(key)

    async def load_ranges(self, keys: Optional[Iterable[str]] = None) -> Dict[str, Range]:
        return await self.masked.load_ranges(keys)

    async def subset_by_index(self, constraints: RawIndexConstraints) -> Coverage:
        return await _mask(await self.source.subset_by_index(constraints), self.polygons, self.axes)

    async def subset_by_value(self, constraints: RawValueConstraints) -> Coverage:
        return await _mask(await self.source.subset_by_value(constraints), self.polygons, self.axes)


async def _mask(cov: Coverage, polygons: Sequence[PolygonRings], axes: Sequence[str]) -> Coverage:
    x_axis, y_axis = axes
    domain = await cov.load_domain()
    missing = [axis for axis in axes if axis not in domain.axes]
    if missing:
        raise InvalidArgumentError(f"Coverage domain has no axes {missing} to mask")

    bitmap = polygon_grid_mask(polygons, domain.axes[x_axis].values, domain.axes[y_axis].values)
    logger.debug(f"Polygon mask keeps {int(bitmap.sum())} of {bitmap.size} grid cells")

    def fn(index: IndexObject, source_range: Range) -> Any:
        if bitmap[index.get(x_axis) or 0, index.get(y_axis) or 0]:
            return source_range.get(index)
        return None

    masked = cov
    for key in cov.parameters:
        masked = map_range(masked, key, fn)
    return MaskedCoverage(cov, masked, polygons, axes)


async def mask_by_polygon(
    cov: Coverage,
    polygon: Any,
    axes: Optional[GridAxes] = None,
    config: Optional[EngineConfig] = None,
) -> Coverage:
    """
    Return a copy of the coverage where range values outside the polygon are None.

    Args:
        cov: A coverage with a lon/lat grid
        polygon: GeoJSON Polygon or MultiPolygon mapping, or an object with
            ``__geo_interface__``
        axes: Grid axes of longitude and latitude, defaults to the configured ones
        config: Engine configuration

    Raises:
        InvalidArgumentError: If the geometry is not a polygon or the grid axes are missing
    """
    assert_is_coverage(cov)
    polygons = [ensure_clockwise_polygon(rings) for rings in _as_multipolygon(polygon)]
    return await _mask(cov, polygons, axes or get_config(config).grid_axes)
