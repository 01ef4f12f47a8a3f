# pie_geometry.py
# Slice geometry for pie / donut charts.
# values -> angle ranges that tile 360 degrees -> donut-slice outlines + label anchors.
# Pure functions only; renderers (donut.py, build_chart_pages.py) draw the results.
#
# Screen convention: y grows downward, angle 0 points to +x (3 o'clock) and
# positive angles turn clockwise as drawn.

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass, field
from itertools import cycle
from typing import Any, List, Optional, Sequence, Tuple, Union

FULL_CIRCLE = 360.0
DEFAULT_INNER_RATIO = 0.4      # donut hole = 0.4 * outer radius
LABEL_RADIUS_RATIO = 0.6       # labels sit at 0.6 * outer radius
LABEL_MIN_PERCENT = 8.0        # labels on slices <= 8% of the circle are hidden
_PERCENT_EPS = 1e-9


# =======================
# Errors
# =======================
class PieChartError(ValueError):
    """Base class for invalid chart configuration."""


class InvalidInput(PieChartError):
    """A data value is negative, NaN or infinite."""


class InvalidGeometry(PieChartError):
    """Outer radius or inner-radius ratio is out of range."""


# =======================
# Value objects
# =======================
@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class AngleRange:
    index: int
    start_deg: float
    end_deg: float

    @property
    def width(self) -> float:
        return self.end_deg - self.start_deg

    @property
    def mid_deg(self) -> float:
        return self.start_deg + self.width / 2.0

    @property
    def percentage(self) -> float:
        """Share of the full circle, 0..100."""
        return self.width * 100.0 / FULL_CIRCLE


@dataclass(frozen=True)
class MoveTo:
    point: Point


@dataclass(frozen=True)
class LineTo:
    point: Point


@dataclass(frozen=True)
class Arc:
    """Circular arc; runs from start_deg to end_deg (decreasing when end < start).

    Like most path APIs, a straight segment joins the current point to the
    arc's start point if they differ.
    """
    center: Point
    radius: float
    start_deg: float
    end_deg: float

    @property
    def start(self) -> Point:
        return point(self.center, self.radius, self.start_deg)

    @property
    def end(self) -> Point:
        return point(self.center, self.radius, self.end_deg)


@dataclass(frozen=True)
class ClosePath:
    pass


PathCommand = Union[MoveTo, LineTo, Arc, ClosePath]


@dataclass(frozen=True)
class SlicePath:
    commands: Tuple[PathCommand, ...]
    center: Point
    outer_radius: float
    inner_radius: float
    start_deg: float
    end_deg: float

    @property
    def width(self) -> float:
        return self.end_deg - self.start_deg

    @property
    def is_empty(self) -> bool:
        return self.width == 0

    @property
    def is_full_ring(self) -> bool:
        return self.width >= FULL_CIRCLE

    @property
    def stroked(self) -> bool:
        # zero-width slices would show a stray radial line, full rings a seam at 0 degrees
        return 0 < self.width < FULL_CIRCLE

    @property
    def area(self) -> float:
        return (self.width / FULL_CIRCLE) * math.pi * (self.outer_radius ** 2 - self.inner_radius ** 2)

    def polygon(self, max_step_deg: float = 2.0) -> List[Point]:
        """Flatten the contour into vertices (closing vertex not repeated)."""
        if max_step_deg <= 0:
            raise ValueError("max_step_deg must be positive")
        pts: List[Point] = []
        for cmd in self.commands:
            if isinstance(cmd, (MoveTo, LineTo)):
                pts.append(cmd.point)
            elif isinstance(cmd, Arc):
                sweep = cmd.end_deg - cmd.start_deg
                steps = max(1, int(math.ceil(abs(sweep) / max_step_deg)))
                for k in range(steps + 1):
                    pts.append(point(cmd.center, cmd.radius, cmd.start_deg + sweep * k / steps))
        # collapse consecutive duplicates (arc starts that coincide with the pen)
        out: List[Point] = []
        for p in pts:
            if not out or out[-1] != p:
                out.append(p)
        if len(out) > 1 and out[0] == out[-1]:
            out.pop()
        return out


@dataclass(frozen=True)
class LabelAnchor:
    point: Point
    visible: bool
    text: str
    percentage: float


def _new_slice_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class PieSlice:
    """One slice instance; `id` is minted at creation and never recomputed."""
    range: AngleRange
    value: float
    appearance: Any = None
    id: str = field(default_factory=_new_slice_id)

    @property
    def index(self) -> int:
        return self.range.index

    def build(self, center: Point, outer_radius: float,
              inner_radius_ratio: float = DEFAULT_INNER_RATIO) -> Tuple[SlicePath, LabelAnchor]:
        return build_slice(self.range, center, outer_radius, inner_radius_ratio)


# =======================
# Angle allocation
# =======================
def _validate_value(index: int, value: Any) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError) as exc:
        raise TypeError(f"value at index {index} must be a real number, got {value!r}") from exc
    if math.isnan(v) or math.isinf(v):
        raise InvalidInput(f"value at index {index} must be finite, got {v!r}")
    if v < 0:
        raise InvalidInput(f"value at index {index} cannot be negative, got {v!r}")
    return v


def allocate(values: Sequence[float]) -> List[AngleRange]:
    """Split 360 degrees into contiguous ranges proportional to ``values``.

    An all-zero series is divided equally so that no angle is NaN and the
    chart is not invisible. The last range always ends at exactly 360.
    """
    clean = [_validate_value(i, v) for i, v in enumerate(values)]
    n = len(clean)
    if n == 0:
        return []

    total = math.fsum(clean)
    if total == 0:
        widths = [FULL_CIRCLE / n] * n
    else:
        widths = [v / total * FULL_CIRCLE for v in clean]

    # the seam snaps to 360 on the last slice that has any width; later zeros stay empty
    last = max(i for i, w in enumerate(widths) if w > 0)

    ranges: List[AngleRange] = []
    start = 0.0
    for i, w in enumerate(widths):
        if i >= last:
            end = FULL_CIRCLE
        elif w == 0:
            end = start
        else:
            end = min(start + w, FULL_CIRCLE)
        ranges.append(AngleRange(index=i, start_deg=start, end_deg=end))
        start = end
    return ranges


def make_slices(values: Sequence[float], appearances: Optional[Sequence[Any]] = None) -> List[PieSlice]:
    """Allocate ``values`` and attach per-index appearances (cycled if short)."""
    values = list(values)
    ranges = allocate(values)
    looks = cycle(appearances) if appearances else cycle([None])
    return [
        PieSlice(range=r, value=float(v), appearance=next(looks))
        for r, v in zip(ranges, values)
    ]


# =======================
# Geometry
# =======================
def validate_geometry(outer_radius: float, inner_radius_ratio: float) -> None:
    r = float(outer_radius)
    if math.isnan(r) or math.isinf(r) or r <= 0:
        raise InvalidGeometry(f"outer_radius must be a positive finite number, got {outer_radius!r}")
    k = float(inner_radius_ratio)
    if math.isnan(k) or not 0 <= k < 1:
        raise InvalidGeometry(f"inner_radius_ratio must be in [0, 1), got {inner_radius_ratio!r}")


def point(center: Point, radius: float, angle_deg: float) -> Point:
    """Point at ``radius`` from ``center`` in the direction ``angle_deg``."""
    a = math.radians(angle_deg % FULL_CIRCLE)
    return Point(center.x + radius * math.cos(a), center.y + radius * math.sin(a))


def slice_path(rng: AngleRange, center: Point, outer_radius: float,
               inner_radius_ratio: float = DEFAULT_INNER_RATIO) -> SlicePath:
    validate_geometry(outer_radius, inner_radius_ratio)
    r_out = float(outer_radius)
    r_in = float(inner_radius_ratio) * r_out
    a0, a1 = rng.start_deg, rng.end_deg
    commands = (
        MoveTo(point(center, r_out, a0)),
        Arc(center, r_out, a0, a1),
        LineTo(point(center, r_in, a1)),
        Arc(center, r_in, a1, a0),
        ClosePath(),
    )
    return SlicePath(
        commands=commands,
        center=center,
        outer_radius=r_out,
        inner_radius=r_in,
        start_deg=a0,
        end_deg=a1,
    )


# =======================
# Labels
# =======================
def label_visible(percentage: float) -> bool:
    return percentage > LABEL_MIN_PERCENT + _PERCENT_EPS


def label_text(percentage: float) -> str:
    return f"{round(percentage)}%"


def label_anchor(rng: AngleRange, center: Point, outer_radius: float,
                 radius_ratio: float = LABEL_RADIUS_RATIO) -> LabelAnchor:
    pct = rng.percentage
    return LabelAnchor(
        point=point(center, radius_ratio * float(outer_radius), rng.mid_deg),
        visible=label_visible(pct),
        text=label_text(pct),
        percentage=pct,
    )


def build_slice(rng: AngleRange, center: Point, outer_radius: float,
                inner_radius_ratio: float = DEFAULT_INNER_RATIO) -> Tuple[SlicePath, LabelAnchor]:
    path = slice_path(rng, center, outer_radius, inner_radius_ratio)
    return path, label_anchor(rng, center, outer_radius)
