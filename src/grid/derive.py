"""
Derived per-cell attributes.

Every function takes a sequence of CellSummary and returns a new list; the
input summaries are left untouched.
"""

from typing import Iterable, List, Sequence, Tuple, Union
import logging
import math

from shapely.geometry import Point

from .errors import DomainError
from .models import CellSummary, is_absent

logger = logging.getLogger(__name__)


def add_centroid_distance(summaries: Sequence[CellSummary],
                          reference_point: Union[Point, Tuple[float, float]],
                          field: str = "dist_to_ref") -> List[CellSummary]:
    """
    Add the distance from each clipped cell's centroid to a reference point.

    Args:
        summaries: Merged cell summaries
        reference_point: Point of interest in the same projected CRS
        field: Name of the new field

    Returns:
        New summaries with ``field`` set, in the linear unit of the CRS
    """
    if not isinstance(reference_point, Point):
        reference_point = Point(*reference_point)
    result = []
    for summary in summaries:
        distance = summary.geometry.centroid.distance(reference_point)
        result.append(summary.with_values(**{field: float(distance)}))
    logger.info(f"Added '{field}' for {len(result)} cells")
    return result


def log_transform(summaries: Sequence[CellSummary], fields: Iterable[str],
                  suffix: str = "_log", replace: bool = False) -> List[CellSummary]:
    """
    Apply log(1 + value) to right-skewed count-like fields.

    Absent values stay absent. With ``replace`` the original field is
    overwritten, otherwise a new ``<field><suffix>`` field is appended.

    Raises:
        DomainError: if any value is negative
        KeyError: if a field is not present on a summary
    """
    fields = list(fields)
    result = []
    for summary in summaries:
        updates = {}
        for name in fields:
            value = summary.values[name]
            target = name if replace else f"{name}{suffix}"
            if is_absent(value):
                updates[target] = None
                continue
            if value < 0:
                raise DomainError(
                    f"Cannot log-transform negative value {value} of '{name}' "
                    f"in cell ({summary.row}, {summary.col})"
                )
            updates[target] = math.log1p(value)
        result.append(summary.with_values(**updates))
    return result


def drop_absent(summaries: Sequence[CellSummary],
                primary_field: str) -> List[CellSummary]:
    """
    Remove cells whose primary field has no observation.

    A cell is dropped when ``primary_field`` is absent, regardless of other
    fields such as a count of 0 from another dataset.
    """
    kept = [s for s in summaries if not is_absent(s.values[primary_field])]
    n_dropped = len(summaries) - len(kept)
    if n_dropped:
        logger.info(f"Dropped {n_dropped} cells without '{primary_field}' data")
    return kept
