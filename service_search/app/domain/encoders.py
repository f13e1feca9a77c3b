"""
Encoders for temporal ranges and grid coordinates in the catalog's formats.
"""

from typing import Any, Mapping, Optional


def encode_temporal(temporal: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Encode a temporal filter as ``start,end[,day_start,day_end]``.

    Returns ``None`` when neither bound is set. Recurring ranges append the
    day-of-year bounds.
    """
    if not temporal:
        return None

    start_date = temporal.get("start_date") or ""
    end_date = temporal.get("end_date") or ""
    if not start_date and not end_date:
        return None

    values = [start_date, end_date]
    if temporal.get("is_recurring"):
        values.append(str(temporal.get("recurring_day_start", "")))
        values.append(str(temporal.get("recurring_day_end", "")))

    return ",".join(values)


def encode_grid_coords(grid_coords: Optional[str]) -> str:
    """Encode user entered grid coordinates for ``two_d_coordinate_system``.

    ``"1,2 3-5,4"`` becomes ``"1:2,3-5:4"``.
    """
    if not grid_coords:
        return ""

    return ",".join(coord.replace(",", ":") for coord in grid_coords.split())
