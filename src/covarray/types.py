"""
Generic type definitions and models for lazy coverage processing.
"""

from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


DOMAIN = "Domain"
COVERAGE = "Coverage"
COVERAGE_COLLECTION = COVERAGE + "Collection"

OPENGIS_CRS_PREFIX = "http://www.opengis.net/def/crs/"
COVJSON_NS = "http://covjson.org/def/core#"


class CRS(str, Enum):
    """Coordinate Reference Systems with a built-in lon/lat projection."""
    EPSG_4979 = OPENGIS_CRS_PREFIX + "EPSG/0/4979"  # 3D WGS84, lat-lon-height
    EPSG_4326 = OPENGIS_CRS_PREFIX + "EPSG/0/4326"  # 2D WGS84, lat-lon
    CRS84 = OPENGIS_CRS_PREFIX + "OGC/1.3/CRS84"  # 2D WGS84, lon-lat

    @classmethod
    def from_string(cls, crs: str) -> "CRS":
        """Create CRS from a URI or an ``AUTHORITY:CODE`` string."""
        upper = crs.upper()
        if upper in ("EPSG:4979", "EPSG:4326", "OGC:CRS84"):
            return {"EPSG:4979": cls.EPSG_4979, "EPSG:4326": cls.EPSG_4326, "OGC:CRS84": cls.CRS84}[upper]
        try:
            return cls(crs)
        except ValueError:
            raise ValueError(f"Invalid CRS: {crs}. Expected one of {[c.value for c in cls]}") from None

    @property
    def longitude_index(self) -> int:
        """Position of the longitude component in this CRS's axis order."""
        return LONGITUDE_AXIS_INDEX[self.value]


GEOGRAPHIC_CRS_IDS = frozenset(c.value for c in CRS)

LONGITUDE_AXIS_INDEX: Mapping[str, int] = MappingProxyType({
    CRS.EPSG_4979.value: 1,
    CRS.EPSG_4326.value: 1,
    CRS.CRS84.value: 0,
})

HORIZONTAL_CRS_TYPES = frozenset(["GeodeticCRS", "GeographicCRS", "GeocentricCRS", "ProjectedCRS"])


class AxisDataType(str, Enum):
    """Kinds of axis values."""
    PRIMITIVE = "primitive"
    TUPLE = COVJSON_NS + "tuple"
    POLYGON = COVJSON_NS + "polygon"


class ReferenceSystem(BaseModel):
    """Reference system description (CRS, temporal RS, identifier RS)."""
    type: str = Field(..., description="System type, e.g. GeographicCRS or TemporalRS")
    id: Optional[str] = Field(None, description="System identifier URI")
    calendar: Optional[str] = Field(None, description="Calendar of a temporal system")

    model_config = ConfigDict(frozen=True, extra="allow")


class ReferenceEntry(BaseModel):
    """Binding of coordinate component names to a reference system."""
    components: Tuple[str, ...] = Field(..., min_length=1, description="Referenced component names")
    system: ReferenceSystem

    model_config = ConfigDict(frozen=True)


class Category(BaseModel):
    """A category of a categorical observed property."""
    id: Optional[str] = Field(None, description="Category identifier")
    label: Dict[str, str] = Field(default_factory=dict)
    description: Optional[Dict[str, str]] = None

    model_config = ConfigDict(frozen=True, extra="allow")


class ObservedProperty(BaseModel):
    """What a parameter measures."""
    id: Optional[str] = None
    label: Dict[str, str] = Field(default_factory=dict)
    categories: Optional[List[Category]] = None

    model_config = ConfigDict(frozen=True, extra="allow")


class Unit(BaseModel):
    """Unit of measurement, by symbol and/or label."""
    symbol: Optional[Any] = None
    label: Optional[Dict[str, str]] = None

    model_config = ConfigDict(frozen=True)


class Parameter(BaseModel):
    """Parameter descriptor of a coverage."""
    key: str = Field(..., description="Parameter key")
    observed_property: ObservedProperty = Field(default_factory=ObservedProperty)
    unit: Optional[Unit] = None
    category_encoding: Optional[Dict[str, List[Any]]] = Field(
        None, description="Category id -> encoded range values"
    )

    model_config = ConfigDict(frozen=True)


class IndexConstraint(BaseModel):
    """Normalized per-axis index constraint, stop is exclusive."""
    start: int = Field(..., ge=0)
    stop: int = Field(..., ge=1)
    step: int = Field(1, ge=1)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode='after')
    def validate_order(self):
        """Validate that start is less than stop."""
        if self.start >= self.stop:
            raise ValueError('start must be less than stop')
        return self

    def is_identity(self, length: int) -> bool:
        return self.start == 0 and self.stop == length and self.step == 1

    def source_index(self, index: int) -> int:
        """Translate an index of the subset into an index of the source."""
        return self.start + index * self.step


class ExactMatch(BaseModel):
    """Select the axis index whose value equals ``value``."""
    value: Any

    model_config = ConfigDict(frozen=True)


class Nearest(BaseModel):
    """Select the axis index whose value is nearest to ``target``."""
    target: Any

    model_config = ConfigDict(frozen=True)


class Interval(BaseModel):
    """Select the axis indices spanning the value interval ``[start, stop]``."""
    start: Any
    stop: Any

    model_config = ConfigDict(frozen=True)


ValueConstraint = Union[ExactMatch, Nearest, Interval]

BBoxTuple = Tuple[float, float, float, float]
