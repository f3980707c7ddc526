"""Engine configuration."""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field, field_validator


class EngineConfig(BaseModel):
    """Defaults shared by coverage construction, masking and projection loading."""

    grid_axes: Tuple[str, str] = Field(
        default=("x", "y"),
        description="Horizontal grid axis keys (x, y) used when none are given",
    )
    default_parameter_key: str = Field(
        default="p1", description="Parameter key used by from_dataarray when none is given"
    )
    time_axis: str = Field(
        default="t", description="Axis key that gets a temporal reference system by default"
    )
    projection_load_timeout: Optional[float] = Field(
        default=30.0,
        description="Seconds to wait for a remote projection definition, None waits forever",
    )
    proj_network: bool = Field(
        default=False,
        description="Allow PROJ to fetch transformation grids from the network",
    )

    @field_validator("projection_load_timeout")
    @classmethod
    def ensure_positive_timeout(cls, timeout: Optional[float]) -> Optional[float]:
        if timeout is not None and timeout <= 0:
            raise ValueError("projection_load_timeout must be positive")
        return timeout

    # ------------------------------------------------------------------
    # Helper accessors
    # ------------------------------------------------------------------
    def projection_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments supplied to the projection cache."""

        return {"timeout": self.projection_load_timeout, "network": self.proj_network}


_DEFAULT_CONFIG = EngineConfig()


def get_config(config: Optional[EngineConfig] = None) -> EngineConfig:
    """Return ``config`` or the package-wide default configuration."""

    return config if config is not None else _DEFAULT_CONFIG
