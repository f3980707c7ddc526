"""
Coverage collections with a basic query interface.
"""

from __future__ import annotations

import asyncio
import logging
import numbers
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .coverage import Coverage
from .domain import Domain
from .errors import InvalidArgumentError, InvalidConstraintError, InvalidConstraintTypeError
from .referencing import as_time, get_longitude_wrapper, is_iso_date_axis, is_longitude_axis
from .types import COVERAGE_COLLECTION, Parameter
from .typing import RawValueConstraints

logger = logging.getLogger(__name__)


class CoverageCollection:
    """An ordered list of coverages sharing parameters and domain type."""

    type = COVERAGE_COLLECTION

    def __init__(
        self,
        coverages: Sequence[Coverage],
        parameters: Optional[Mapping[str, Parameter]] = None,
        domain_type: Optional[str] = None,
        paging: Optional[Any] = None,
    ) -> None:
        self.coverages: List[Coverage] = list(coverages)
        self.parameters = dict(parameters) if parameters is not None else None
        self.domain_type = domain_type
        self.paging = paging

    def query(self) -> "CollectionQuery":
        """
        Start a query on this collection.

        Raises:
            InvalidArgumentError: If the collection is paged
        """
        if self.paging:
            raise InvalidArgumentError("Paged collections not supported")
        return CollectionQuery(self)

    def __len__(self) -> int:
        return len(self.coverages)

    def __repr__(self) -> str:
        return f"CoverageCollection(coverages={len(self.coverages)}, domain_type={self.domain_type!r})"


class CollectionQuery:
    """
    Chainable filter and subset query of a coverage collection.

    Examples:
        >>> filtered = await collection.query().filter({
        ...     "t": {"start": "2015-01-01T01:00:00", "stop": "2015-01-01T02:00:00"}
        ... }).execute()
    """

    def __init__(self, collection: CoverageCollection) -> None:
        self._collection = collection
        self._filter: Dict[str, Any] = {}
        self._subset: Dict[str, Any] = {}

    def filter(self, spec: Mapping[str, Mapping[str, Any]]) -> "CollectionQuery":
        """
        Keep coverages whose axis extent intersects ``{start, stop}`` per axis.

        Supports ISO 8601 date axes, all other string axes compare alphabetically.
        """
        self._filter.update(spec)
        return self

    def subset(self, spec: RawValueConstraints) -> "CollectionQuery":
        """Subset every kept coverage by domain values, see ``Coverage.subset_by_value``."""
        self._subset.update(spec)
        return self

    async def _apply(self, cov: Coverage) -> Optional[Coverage]:
        domain = await cov.load_domain()
        if not matches_filter(domain, self._filter):
            return None
        if not self._subset:
            return cov
        return await cov.subset_by_value(self._subset)

    async def execute(self) -> CoverageCollection:
        """Apply the query and return a new collection, keeping coverage order."""
        collection = self._collection
        results = await asyncio.gather(*(self._apply(cov) for cov in collection.coverages))
        coverages = [cov for cov in results if cov is not None]
        logger.debug(f"Query kept {len(coverages)} of {len(collection.coverages)} coverages")
        return CoverageCollection(coverages, collection.parameters, collection.domain_type)


def _is_primitive(value: Any) -> bool:
    return isinstance(value, (numbers.Number, str)) and not isinstance(value, bool)


def matches_filter(domain: Domain, filter_spec: Mapping[str, Mapping[str, Any]]) -> bool:
    """
    Return whether the domain's axis extents intersect every filter condition.

    Raises:
        InvalidConstraintError: If a filtered axis does not exist
        InvalidConstraintTypeError: If a filtered axis has no primitive values
    """
    for axis_name, condition in filter_spec.items():
        if axis_name not in domain.axes:
            raise InvalidConstraintError(f'Axis "{axis_name}" does not exist', axis=axis_name)
        values = domain.axes[axis_name].values
        lo, hi = values[0], values[len(values) - 1]
        if not _is_primitive(lo):
            raise InvalidConstraintTypeError("Can only filter primitive axis values", axis=axis_name)
        start, stop = condition["start"], condition["stop"]

        if is_iso_date_axis(domain, axis_name):
            lo, hi = as_time(lo), as_time(hi)
            start, stop = as_time(start), as_time(stop)
        elif is_longitude_axis(domain, axis_name):
            wrap = get_longitude_wrapper(domain, axis_name)
            start, stop = wrap(start), wrap(stop)

        if lo > hi:
            lo, hi = hi, lo
        if hi < start or stop < lo:
            return False
    return True
