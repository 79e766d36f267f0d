from .mcp import minimum_convex_polygon, home_range_area, AREA_UNITS
from .kernel import KernelHomeRange, kernel_home_range, reference_bandwidth

__all__ = [
    "minimum_convex_polygon",
    "home_range_area",
    "AREA_UNITS",
    "KernelHomeRange",
    "kernel_home_range",
    "reference_bandwidth",
]
