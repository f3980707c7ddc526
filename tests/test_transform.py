"""
Tests for covarray.transform module.
"""

import asyncio

import numpy as np
import pytest

from covarray.coverage import FunctionRange, LoaderCoverage, from_domain
from covarray.domain import Domain
from covarray.errors import (
    InvalidArgumentError,
    InvalidCategoryError,
    TypeMismatchError,
    UnsupportedReprojectionError,
)
from covarray.referencing import load_projection
from covarray.transform import (
    map_range,
    reproject,
    with_categories,
    with_derived_parameter,
    with_parameters,
    with_simple_derived_parameter,
)
from covarray.types import CRS, AxisDataType, Category, ObservedProperty, Parameter

BNG = "http://www.opengis.net/def/crs/EPSG/0/27700"


def categorical_coverage():
    parameter = Parameter(
        key="landcover",
        observed_property=ObservedProperty(
            label={"en": "Land cover"},
            categories=[Category(id="foo", label={"en": "Foo"}), Category(id="bar", label={"en": "Bar"})],
        ),
        category_encoding={"foo": [1, 2], "bar": [3]},
    )
    domain = Domain(axes={"x": {"values": [0, 1, 2]}})

    async def load_domain():
        return domain

    async def load_range(key):
        return FunctionRange(domain.shape, "integer", lambda index: (index.get("x") or 0) + 1)

    return LoaderCoverage({"landcover": parameter}, load_domain, load_range)


def point_domain(values):
    return Domain(
        domain_type="MultiPoint",
        axes={
            "composite": {
                "values": values,
                "components": ["x", "y"],
                "data_type": AxisDataType.TUPLE,
            }
        },
        referencing=[{"components": ["x", "y"], "system": {"type": "ProjectedCRS", "id": BNG}}],
    )


def lonlat_reference():
    return Domain(
        axes={"x": {"values": [-10, 10]}, "y": {"values": [50, 60]}},
        referencing=[{"components": ["x", "y"], "system": {"type": "GeographicCRS", "id": CRS.CRS84.value}}],
    )


class TestWithParameters:
    """Test parameter replacement."""

    def test_replaces_parameters(self, grid_coverage):
        parameter = Parameter(key="temp", observed_property=ObservedProperty(label={"en": "Temperature"}))
        cov = with_parameters(grid_coverage, {"temp": parameter})

        assert cov.parameters["temp"].observed_property.label == {"en": "Temperature"}
        assert grid_coverage.parameters["temp"].observed_property.label == {"en": "temp"}

    def test_survives_subsetting(self, grid_coverage):
        parameter = Parameter(key="temp", observed_property=ObservedProperty(label={"en": "Temperature"}))
        cov = with_parameters(grid_coverage, {"temp": parameter})

        subset = asyncio.run(cov.subset_by_index({"x": 1}))
        assert subset.parameters["temp"] is parameter


class TestWithCategories:
    """Test category remapping."""

    def test_merges_encodings(self):
        """Test that categories mapped onto the same new category merge their values."""
        cov = categorical_coverage()
        observed_property = {"label": {"en": "Merged"}, "categories": [{"id": "foobar", "label": {"en": "Foobar"}}]}

        remapped = with_categories(cov, "landcover", observed_property, {"foo": "foobar", "bar": "foobar"})

        parameter = remapped.parameters["landcover"]
        assert parameter.category_encoding == {"foobar": [1, 2, 3]}
        assert parameter.observed_property.categories[0].id == "foobar"

    def test_input_unchanged(self):
        cov = categorical_coverage()
        observed_property = ObservedProperty(categories=[Category(id="foobar")])
        with_categories(cov, "landcover", observed_property, {"foo": "foobar"})

        assert cov.parameters["landcover"].category_encoding == {"foo": [1, 2], "bar": [3]}

    def test_unmapped_categories_dropped(self):
        cov = categorical_coverage()
        observed_property = ObservedProperty(categories=[Category(id="f"), Category(id="empty")])
        remapped = with_categories(cov, "landcover", observed_property, {"foo": "f"})

        assert remapped.parameters["landcover"].category_encoding == {"f": [1, 2]}

    def test_missing_id(self):
        cov = categorical_coverage()
        observed_property = ObservedProperty(categories=[Category(label={"en": "No id"})])
        with pytest.raises(InvalidCategoryError):
            with_categories(cov, "landcover", observed_property, {"foo": "x"})

    def test_ranges_unchanged(self):
        cov = categorical_coverage()
        remapped = with_categories(cov, "landcover", ObservedProperty(categories=[Category(id="x")]), {"foo": "x"})
        data = asyncio.run(remapped.load_range("landcover"))
        assert data.get({"x": 2}) == 3


class TestMapRange:
    """Test range mapping."""

    def test_maps_values(self, grid_coverage):
        cov = map_range(grid_coverage, "temp", lambda index, r: r.get(index) * 2)
        data = asyncio.run(cov.load_range("temp"))

        assert data.get({"x": 1, "y": 2}) == 42.0
        assert data.data_type == "float"

    def test_data_type_override(self, grid_coverage):
        cov = map_range(grid_coverage, "temp", lambda index, r: int(r.get(index)), data_type="integer")
        data = asyncio.run(cov.load_range("temp"))
        assert data.data_type == "integer"
        assert data.get({"x": 3, "y": 1}) == 13

    def test_survives_subsetting(self, grid_coverage):
        """Test that the mapping is applied to subsets too."""
        cov = map_range(grid_coverage, "temp", lambda index, r: r.get(index) * 2)

        async def check():
            subset = await cov.subset_by_value({"x": {"start": 20, "stop": 30}})
            return await subset.load_range("temp")

        data = asyncio.run(check())
        assert data.get({"x": 0, "y": 1}) == 24.0

    def test_source_unchanged(self, grid_coverage):
        map_range(grid_coverage, "temp", lambda index, r: None)
        data = asyncio.run(grid_coverage.load_range("temp"))
        assert data.get({"x": 1}) == 1.0


class TestDerivedParameters:
    """Test derived parameters."""

    def test_simple_derived_parameter(self):
        """Test deriving a parameter from the domain coverage of a grid."""
        domain = Domain(axes={"x": {"values": [0, 1, 2]}, "y": {"values": [3, 4]}})
        cov = from_domain(domain)
        key = next(iter(cov.parameters))

        derived = with_simple_derived_parameter(
            cov,
            parameter={"key": "foo", "observed_property": {"label": {"en": "bar"}}},
            input_parameters=[key],
            fn=lambda value: value + 5,
        )
        assert "foo" in derived.parameters
        assert key in derived.parameters

        ranges = asyncio.run(derived.load_ranges([key, "foo"]))
        for x in range(3):
            for y in range(2):
                index = {"x": x, "y": y}
                assert ranges["foo"].get(index) == ranges[key].get(index) + 5
        assert ranges["foo"].shape == {"x": 3, "y": 2}

    def test_none_inputs_give_none(self, grid_coverage):
        masked = map_range(grid_coverage, "temp", lambda index, r: None if index.get("x") == 0 else r.get(index))
        derived = with_simple_derived_parameter(masked, {"key": "celsius"}, ["temp"], lambda t: t - 273.15)

        data = asyncio.run(derived.load_range("celsius"))
        assert data.get({"x": 0, "y": 0}) is None
        assert data.get({"x": 1, "y": 0}) == pytest.approx(1 - 273.15)

    def test_multiple_inputs(self, grid_coverage):
        doubled = with_simple_derived_parameter(grid_coverage, {"key": "double"}, ["temp"], lambda t: t * 2)
        summed = with_derived_parameter(
            doubled,
            {"key": "sum"},
            ["temp", "double"],
            lambda index, a, b: a.get(index) + b.get(index),
        )

        data = asyncio.run(summed.load_range("sum"))
        assert data.get({"x": 2, "y": 1}) == 36.0

    def test_survives_subsetting(self, grid_coverage):
        derived = with_simple_derived_parameter(grid_coverage, {"key": "plus1"}, ["temp"], lambda t: t + 1)

        async def check():
            subset = await derived.subset_by_index({"y": 2})
            return await subset.load_range("plus1")

        data = asyncio.run(check())
        assert data.shape == {"x": 4, "y": 1}
        assert data.get({"x": 3}) == 24.0

    def test_invalid_inputs(self, grid_coverage):
        with pytest.raises(InvalidArgumentError):
            with_derived_parameter(grid_coverage, {"key": "d"}, [], lambda index: 0)
        with pytest.raises(InvalidArgumentError):
            with_derived_parameter(grid_coverage, {"key": "d"}, ["missing"], lambda index, r: 0)

    def test_rejects_non_coverage(self):
        with pytest.raises(TypeMismatchError):
            map_range({"type": "Coverage"}, "temp", lambda index, r: 0)


class TestReproject:
    """Test reprojection of point coverages."""

    def test_reprojects_tuples(self, projection_store):
        """Test that British National Grid points become lon/lat tuples."""
        domain = point_domain([(429158, 623009), (429158, 623009)])
        cov = from_domain(domain)
        asyncio.run(load_projection(domain, projection_store))

        async def check():
            reprojected = await reproject(cov, lonlat_reference(), projection_store)
            return reprojected, await reprojected.load_domain()

        reprojected, new_domain = asyncio.run(check())
        lon, lat = new_domain.axes["composite"].values[0]
        assert lat == pytest.approx(55.5, abs=0.05)
        assert lon == pytest.approx(-1.54, abs=0.005)

        ref = new_domain.referencing[0]
        assert ref.components == ("x", "y")
        assert ref.system.id == CRS.CRS84.value
        assert ref.system.type == "GeographicCRS"
        assert new_domain.axes["composite"].bounds is None

        # input is unchanged
        assert domain.axes["composite"].values[0] == (429158, 623009)
        assert domain.referencing[0].system.id == BNG

    def test_numpy_tuples(self, projection_store):
        values = np.array([[429158.0, 623009.0]])
        domain = point_domain(values)
        asyncio.run(load_projection(domain, projection_store))

        reprojected = asyncio.run(reproject(from_domain(domain), lonlat_reference(), projection_store))
        new_values = asyncio.run(reprojected.load_domain()).axes["composite"].values

        assert new_values[0][1] == pytest.approx(55.5, abs=0.05)
        assert values[0][0] == 429158.0

    def test_subset_is_reprojected(self, projection_store):
        domain = point_domain([(429158, 623009), (400000, 600000)])
        asyncio.run(load_projection(domain, projection_store))

        async def check():
            reprojected = await reproject(from_domain(domain), lonlat_reference(), projection_store)
            subset = await reprojected.subset_by_index({"composite": 0})
            return await subset.load_domain(), await subset.load_range("domain")

        subset_domain, data = asyncio.run(check())
        assert len(subset_domain.axes["composite"].values) == 1
        assert subset_domain.axes["composite"].values[0][1] == pytest.approx(55.5, abs=0.05)
        assert subset_domain.referencing[0].system.id == CRS.CRS84.value
        assert data.get({}) == 0

    def test_grid_not_supported(self, grid_coverage):
        with pytest.raises(UnsupportedReprojectionError):
            asyncio.run(reproject(grid_coverage, lonlat_reference()))

    def test_3d_crs_not_supported(self):
        domain = Domain(
            axes={"composite": {"values": [(1, 2, 3)], "components": ["x", "y", "z"], "data_type": AxisDataType.TUPLE}},
            referencing=[{"components": ["x", "y", "z"], "system": {"type": "GeographicCRS", "id": CRS.EPSG_4979.value}}],
        )
        with pytest.raises(UnsupportedReprojectionError):
            asyncio.run(reproject(from_domain(domain), lonlat_reference()))

    def test_polygons_not_supported(self):
        domain = Domain(
            axes={
                "composite": {
                    "values": [[[(0, 0), (1, 0), (1, 1), (0, 0)]]],
                    "components": ["x", "y"],
                    "data_type": AxisDataType.POLYGON,
                }
            },
            referencing=[{"components": ["x", "y"], "system": {"type": "GeographicCRS", "id": CRS.CRS84.value}}],
        )
        with pytest.raises(UnsupportedReprojectionError):
            asyncio.run(reproject(from_domain(domain), lonlat_reference()))
