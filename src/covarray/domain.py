"""
Axis and domain models.

Domains are immutable by convention: every operation in this package builds
new ``Axis``/``Domain`` objects and shares unchanged value containers by
reference instead of copying them.
"""

from typing import Any, Dict, List, Literal, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .types import DOMAIN, AxisDataType, ReferenceEntry
from .typing import Bounds


class ArrayBounds:
    """Bounds backed by a sequence of ``(lower, upper)`` pairs."""

    def __init__(self, values: Sequence[Tuple[Any, Any]]) -> None:
        self._values = values

    def get(self, index: int) -> Tuple[Any, Any]:
        lower, upper = self._values[index]
        return lower, upper


class StridedBounds:
    """Bounds of a subsetted axis, resolved against the source bounds on access."""

    def __init__(self, source: Bounds, start: int, step: int) -> None:
        self.source = source
        self.start = start
        self.step = step

    def get(self, index: int) -> Tuple[Any, Any]:
        return self.source.get(self.start + index * self.step)


class Axis(BaseModel):
    """A named coordinate dimension."""

    key: str = Field(..., description="Axis identifier, unique within a domain")
    values: Any = Field(..., description="Axis values: list, tuple or numpy array")
    components: Tuple[str, ...] = Field(
        default=(), description="Component names packed into each value"
    )
    data_type: AxisDataType = Field(default=AxisDataType.PRIMITIVE)
    bounds: Optional[Any] = Field(None, description="Object with get(index) -> (lower, upper)")

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    @model_validator(mode="before")
    @classmethod
    def default_components(cls, data: Any) -> Any:
        """Primitive axes carry a single component named after the axis."""
        if isinstance(data, dict) and not data.get("components"):
            data = {**data, "components": (data.get("key"),)}
        return data

    @model_validator(mode='after')
    def validate_values(self):
        """Validate that the axis has at least one value."""
        if len(self.values) == 0:
            raise ValueError(f"Axis '{self.key}' must have at least one value")
        return self

    def __len__(self) -> int:
        return len(self.values)

    @property
    def is_primitive(self) -> bool:
        return self.data_type == AxisDataType.PRIMITIVE

    def component_index(self, component: str) -> int:
        """Return the position of ``component`` within composite values."""
        return self.components.index(component)


class Domain(BaseModel):
    """Named set of axes plus the referencing binding their components to systems."""

    type: Literal["Domain"] = DOMAIN
    domain_type: Optional[str] = Field(None, description="Domain type URI or short name")
    axes: Dict[str, Axis] = Field(..., description="Axes by key, in axis order")
    referencing: List[ReferenceEntry] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @field_validator("axes", mode="before")
    @classmethod
    def coerce_axes(cls, axes: Any) -> Any:
        if isinstance(axes, Mapping):
            return {
                key: Axis(**{"key": key, **axis}) if isinstance(axis, Mapping) else axis
                for key, axis in axes.items()
            }
        # sequence of Axis objects
        return {axis.key: axis for axis in axes}

    @model_validator(mode='after')
    def validate_referencing(self):
        """Validate that every referenced component is known and referenced once."""
        known = set(self.axes)
        for axis in self.axes.values():
            known.update(axis.components)
        seen = set()
        for ref in self.referencing:
            for component in ref.components:
                if component in seen:
                    raise ValueError(f"Component '{component}' is referenced more than once")
                if component not in known:
                    raise ValueError(f"Referenced component '{component}' is not part of the domain")
                seen.add(component)
        return self

    @property
    def shape(self) -> Dict[str, int]:
        """Axis key -> number of axis values."""
        return {key: len(axis.values) for key, axis in self.axes.items()}

    def with_axes(self, axes: Mapping[str, Axis]) -> "Domain":
        """Return a new domain with some axes replaced."""
        new_axes = dict(self.axes)
        new_axes.update(axes)
        return self.model_copy(update={"axes": new_axes})
