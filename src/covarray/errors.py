"""Custom exception hierarchy for CovArray."""

from typing import Optional


class CovArrayError(Exception):
    """Base exception for CovArray library."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class InvalidArgumentError(CovArrayError, ValueError):
    """An argument is unusable, e.g. an empty sequence passed to a search."""
    pass


class InvalidConstraintError(CovArrayError, ValueError):
    """A malformed index or value constraint."""

    def __init__(self, message: str, axis: Optional[str] = None, cause: Optional[Exception] = None):
        super().__init__(message, cause)
        self.axis = axis


class InvalidConstraintTypeError(InvalidConstraintError, TypeError):
    """The constraint shape or value type does not fit the axis kind."""
    pass


class ValueNotFoundError(CovArrayError, LookupError):
    """An exact-match value constraint has no matching axis value."""

    def __init__(self, axis: str, value: object):
        super().__init__(f"Domain value not found on axis '{axis}': {value!r}")
        self.axis = axis
        self.value = value


class NotALongitudeAxisError(CovArrayError, ValueError):
    """The axis is not bound to a geodetic CRS at the longitude position."""

    def __init__(self, axis: str):
        super().__init__(f"'{axis}' is not a longitude axis")
        self.axis = axis


class InvalidDateError(CovArrayError, ValueError):
    """A value could not be interpreted as a date."""

    def __init__(self, value: object, cause: Optional[Exception] = None):
        super().__init__(f"Invalid date: {value!r}", cause)
        self.value = value


class UnsupportedReferencingError(CovArrayError, ValueError):
    """The domain referencing is absent, ambiguous or not supported."""
    pass


class UnsupportedReprojectionError(CovArrayError, ValueError):
    """The coverage cannot be reprojected with the current limitations."""
    pass


class ProjectionNotCachedError(CovArrayError, LookupError):
    """No projection is cached for the CRS; it must be loaded first."""

    def __init__(self, crs_id: Optional[str]):
        super().__init__(
            f"Projection {crs_id} not cached, use load_projection() instead"
        )
        self.crs_id = crs_id


class TypeMismatchError(CovArrayError, TypeError):
    """An object does not carry the expected ``type`` tag."""
    pass


class InvalidCategoryError(CovArrayError, ValueError):
    """A category definition is incomplete."""
    pass
