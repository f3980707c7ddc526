"""
Shared test configuration, fixtures, and markers for covarray tests.
"""

import numpy as np
import pytest

from covarray.coverage import ArrayRange, LoaderCoverage
from covarray.domain import Domain
from covarray.referencing import ProjectionCache
from covarray.types import CRS, ObservedProperty, Parameter, ReferenceEntry, ReferenceSystem


def pytest_configure(config):
    """Configure test markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (>1s)")
    config.addinivalue_line("markers", "property: marks property-based tests")
    config.addinivalue_line("markers", "unit: marks unit tests (fast, pure logic)")


def make_grid_coverage(x, y, values, key="temp", crs_id=CRS.CRS84.value, t=None):
    """
    Grid coverage over ``x``/``y`` (and optionally ``t``).

    ``values`` is indexed ``[y][x]`` or ``[t][y][x]``.
    """
    axes = {"x": {"values": x}, "y": {"values": y}}
    dims = ["y", "x"]
    referencing = [
        ReferenceEntry(components=("x", "y"), system=ReferenceSystem(type="GeographicCRS", id=crs_id)),
    ]
    if t is not None:
        axes["t"] = {"values": t}
        dims = ["t", "y", "x"]
        referencing.append(
            ReferenceEntry(components=("t",), system=ReferenceSystem(type="TemporalRS", calendar="Gregorian"))
        )
    domain = Domain(domain_type="Grid", axes=axes, referencing=referencing)
    data = np.asarray(values, dtype=float)
    parameter = Parameter(key=key, observed_property=ObservedProperty(label={"en": key}))

    async def load_domain():
        return domain

    async def load_range(k):
        return ArrayRange(data, dims, domain.shape, "float")

    return LoaderCoverage({key: parameter}, load_domain, load_range, domain_type="Grid")


@pytest.fixture
def coverage_factory():
    """Factory building grid coverages from nested value lists."""
    return make_grid_coverage


@pytest.fixture
def grid_coverage():
    """3x4 lon/lat grid with values 10 * y index + x index."""
    x = [0.0, 10.0, 20.0, 30.0]
    y = [50.0, 51.0, 52.0]
    values = [[10 * j + i for i in range(len(x))] for j in range(len(y))]
    return make_grid_coverage(x, y, values)


@pytest.fixture
def projection_store():
    """Fresh projection cache isolated from the module default."""
    return ProjectionCache()
