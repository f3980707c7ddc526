import asyncio
from typing import Any, Dict

import numpy as np
import pytest
import xarray as xr

from covarray.config import EngineConfig
from covarray.coverage import ArrayRange, FunctionRange, LoaderCoverage, from_dataarray, from_domain
from covarray.domain import Domain
from covarray.errors import InvalidArgumentError, TypeMismatchError
from covarray.types import CRS, Parameter


def load(cov, key=None):
    async def run() -> Any:
        domain = await cov.load_domain()
        ranges = await cov.load_ranges()
        return domain, ranges[key] if key else ranges

    return asyncio.run(run())


def test_from_domain_grid_is_checkerboard() -> None:
    domain = Domain(axes={"x": {"values": [0, 1, 2]}, "y": {"values": [3, 4]}})
    cov = from_domain(domain)

    _, data = load(cov, "domain")

    parameter = cov.parameters["domain"]
    assert [c.id for c in parameter.observed_property.categories] == ["a", "b"]
    assert parameter.category_encoding == {"a": [0], "b": [1]}
    assert data.get({"x": 0, "y": 0}) == 1
    assert data.get({"x": 1, "y": 0}) == 0
    assert data.get({"x": 1, "y": 1}) == 1
    assert data.shape == {"x": 3, "y": 2}


def test_from_domain_non_grid_is_constant() -> None:
    domain = Domain(axes={"x": {"values": [5]}, "y": {"values": [3]}, "t": {"values": ["2015-01-01"]}})
    cov = from_domain(domain)

    _, data = load(cov, "domain")

    assert [c.label for c in cov.parameters["domain"].observed_property.categories] == [{"en": "X"}]
    assert data.get({}) == 0


def test_from_domain_custom_grid_axes() -> None:
    domain = Domain(axes={"lon": {"values": [0, 1]}, "lat": {"values": [0, 1]}})

    cov = from_domain(domain, config=EngineConfig(grid_axes=("lon", "lat")))
    _, data = load(cov, "domain")

    assert data.get({"lon": 1, "lat": 0}) == 0


def test_from_domain_rejects_non_domain() -> None:
    with pytest.raises(TypeMismatchError):
        from_domain({"axes": {}})


def test_from_dataarray_builds_domain_and_range() -> None:
    arr = xr.DataArray(
        [[1.0, 2.0, 3.0], [4.0, np.nan, 6.0]],
        dims=("y", "x"),
        coords={"y": [10, 12], "x": [100, 101, 102]},
    )
    cov = from_dataarray(arr, parameter={"key": "temperature"})

    domain, data = load(cov, "temperature")

    assert list(cov.parameters) == ["temperature"]
    assert list(domain.axes) == ["y", "x"]
    assert domain.shape == {"y": 2, "x": 3}
    assert domain.referencing[0].system.id == CRS.CRS84.value
    assert data.get({"x": 2, "y": 1}) == 6.0
    assert data.get({"x": 1, "y": 1}) is None
    assert data.data_type == "float"


def test_from_dataarray_defaults() -> None:
    arr = xr.DataArray(
        np.arange(6).reshape(3, 2),
        dims=("t", "x"),
        coords={"t": np.array(["2015-01-01", "2015-01-02", "2015-01-03"], dtype="datetime64[ns]")},
    )
    cov = from_dataarray(arr)

    domain, data = load(cov, "p1")

    assert domain.axes["t"].values[0] == "2015-01-01T00:00:00.000Z"
    np.testing.assert_array_equal(domain.axes["x"].values, [0, 1])
    assert [ref.system.type for ref in domain.referencing] == ["TemporalRS"]
    assert data.data_type == "integer"
    assert data.get({"t": 2, "x": 1}) == 5


def test_from_dataarray_scalar_coordinates_become_axes() -> None:
    arr = xr.DataArray([1.0, 2.0], dims=("x",), coords={"x": [0.0, 1.0], "z": 500.0})
    cov = from_dataarray(arr)

    domain, data = load(cov, "p1")

    assert domain.shape == {"x": 2, "z": 1}
    assert data.get({"x": 1, "z": 0}) == 2.0


def test_from_dataarray_value_subset() -> None:
    arr = xr.DataArray(
        [[1, 2, 3], [4, 5, 6]],
        dims=("y", "x"),
        coords={"y": [10, 12], "x": [100, 101, 102]},
    )
    cov = from_dataarray(arr, parameter=Parameter(key="v"))

    async def run() -> Dict[str, Any]:
        subset = await cov.subset_by_value({"x": 101, "y": {"target": 11.5}})
        return {"domain": await subset.load_domain(), "range": await subset.load_range("v")}

    result = asyncio.run(run())
    assert result["domain"].shape == {"y": 1, "x": 1}
    assert result["range"].get({}) == 5


def test_loader_coverage_unknown_parameter() -> None:
    domain = Domain(axes={"x": {"values": [0]}})
    cov = from_domain(domain)

    with pytest.raises(InvalidArgumentError):
        asyncio.run(cov.load_range("missing"))


def test_loader_coverage_validates_domain() -> None:
    async def load_domain() -> Any:
        return {"type": "Domain"}

    async def load_range(key: str) -> Any:
        return FunctionRange({}, "float", lambda index: 0.0)

    cov = LoaderCoverage({"p": Parameter(key="p")}, load_domain, load_range)
    with pytest.raises(TypeMismatchError):
        asyncio.run(cov.load_domain())


def test_array_range_dimension_mismatch() -> None:
    with pytest.raises(InvalidArgumentError):
        ArrayRange(np.zeros((2, 2)), ["x"], {"x": 2}, "float")
