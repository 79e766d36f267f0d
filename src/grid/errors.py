"""Exceptions raised by the grid aggregation pipeline."""


class GridError(Exception):
    """Base class for grid pipeline errors."""
    pass


class InvalidGeometryError(GridError):
    """Exception raised when a study polygon or cell size cannot form a grid."""
    pass


class DomainError(GridError):
    """Exception raised when a derived transform gets a value outside its domain."""
    pass
