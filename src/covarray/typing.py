"""Type aliases and protocols for CovArray."""

from typing import Any, Awaitable, Callable, Dict, Mapping, NamedTuple, Optional, Protocol, Tuple, TypeAlias

# Type aliases for better user experience
IndexObject: TypeAlias = Mapping[str, int]  # axis key -> index, missing keys default to 0
Shape: TypeAlias = Dict[str, int]  # axis key -> axis length
RawIndexConstraints: TypeAlias = Mapping[str, Any]
RawValueConstraints: TypeAlias = Mapping[str, Any]
GridAxes: TypeAlias = Tuple[str, str]  # (x, y)


class LonLat(NamedTuple):
    """Geodetic position in degrees."""
    lon: float
    lat: float


class XY(NamedTuple):
    """Position in the native coordinates of a horizontal CRS."""
    x: float
    y: float


# Protocols for collaborator interfaces
class Bounds(Protocol):
    """Per-index cell extent, accessed lazily by index."""

    def get(self, index: int) -> Tuple[Any, Any]:
        ...


class Projection(Protocol):
    """Converts between geodetic lon/lat and projected x/y positions."""

    def project(self, position: LonLat) -> XY:
        ...

    def unproject(self, position: XY) -> LonLat:
        ...


class ProjectionStore(Protocol):
    """Cache of projections keyed by CRS identifier."""

    def lookup(self, crs_id: str) -> Optional[Projection]:
        ...

    async def load_remote(self, crs_id: str, config: Optional["EngineConfig"] = None) -> Projection:
        ...


RangeGetter: TypeAlias = Callable[[IndexObject], Any]
DomainLoader: TypeAlias = Callable[[], Awaitable["Domain"]]
RangeLoader: TypeAlias = Callable[[str], Awaitable["Range"]]


# Import types that are used in aliases
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from .config import EngineConfig
    from .domain import Domain
    from .coverage import Range
