"""Display strings for the route summary."""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal

PLACEHOLDER = "--"


def format_duration(seconds: float | None) -> str:
    """``"N min"``, ``"H hr"`` or ``"H hr M min"``; never less than a minute."""

    if seconds is None or not math.isfinite(seconds):
        return PLACEHOLDER
    minutes = (Decimal(str(seconds)) / 60).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    total = max(int(minutes), 1)
    if total < 60:
        return f"{total} min"
    hours, rest = divmod(total, 60)
    if rest == 0:
        return f"{hours} hr"
    return f"{hours} hr {rest} min"


def format_distance(meters: float | None) -> str:
    """Kilometres with exactly one decimal, rounded half away from zero."""

    if meters is None or not math.isfinite(meters):
        return PLACEHOLDER
    km = (Decimal(str(meters)) / 1000).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    return str(km)
