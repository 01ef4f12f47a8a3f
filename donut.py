# donut.py
# Donut chart (SVG) built on pie_geometry: proportional slices, 2px separator stroke in the
# background colour, percentage labels centred inside each slice (hidden on slices <= 8%).
# Produces ONE chart per group from a long-form table (Excel or CSV).
# Requires: pip install svgwrite pandas openpyxl  (optional: cairosvg if rsvg-convert not available)

from __future__ import annotations

import math
import os
import shutil
import subprocess
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd
import svgwrite

try:
    import tomllib  # py3.11+
except ImportError:
    import tomli as tomllib  # type: ignore

from pie_geometry import (
    DEFAULT_INNER_RATIO,
    Arc,
    ClosePath,
    LineTo,
    MoveTo,
    PieChartError,
    PieSlice,
    Point,
    SlicePath,
    make_slices,
    validate_geometry,
)

# --- anchor everything to this file's folder ---
HERE = Path(__file__).parent


def _load_cfg(path: str | None = None) -> dict:
    cfg_path = Path(path) if path else HERE / "Configs" / "config.toml"
    if cfg_path.exists():
        with open(cfg_path, "rb") as f:
            return tomllib.load(f)
    return {}

_CFG = _load_cfg()

# Read defaults from config, but keep sane fallbacks
DATA_PATH  = str(HERE / _CFG.get("paths", {}).get("data", "ChartData.xlsx"))
SHEET_NAME = _CFG.get("paths", {}).get("sheet", "Chart Data - LongForm")
CHART_DIR  = str(HERE / _CFG.get("paths", {}).get("svg_dir", "charts"))

GROUP_COL = _CFG.get("columns", {}).get("group", "Chart")
LABEL_COL = _CFG.get("columns", {}).get("label", "Label")
VALUE_COL = _CFG.get("columns", {}).get("value", "Value")

CHART_SIZE   = int(_CFG.get("chart", {}).get("size", 300))
RING_RATIO   = float(_CFG.get("chart", {}).get("ring_ratio", DEFAULT_INNER_RATIO))
BACKGROUND   = _CFG.get("chart", {}).get("background", "#ffffff")
TEXT_COLOR   = _CFG.get("chart", {}).get("text_color", BACKGROUND)   # labels read on the slice fill
STROKE_WIDTH = float(_CFG.get("chart", {}).get("stroke_width", 2))
FONT_SIZE    = float(_CFG.get("chart", {}).get("font_size", 12))

FONT_MED_NAME = _CFG.get("fonts", {}).get("medium_name", "HKGrotesk-Medium")

# solid colour, or (bottom, top) pair for a vertical gradient
Appearance = Union[str, Tuple[str, str]]


# =======================
# Geometry helpers
# =======================
def _fmt(p: Point) -> str:
    return f"{p.x:.3f},{p.y:.3f}"


def _arc_segments(arc: Arc) -> List[str]:
    """SVG arc commands for `arc`, split into pieces of at most 180 degrees.

    A single SVG arc cannot describe a full circle (start == end draws nothing),
    so full rings come out as two half-arcs per edge.
    """
    sweep = arc.end_deg - arc.start_deg
    if sweep == 0:
        return []
    pieces = max(1, int(math.ceil(abs(sweep) / 180.0)))
    sweep_flag = 1 if sweep > 0 else 0
    out = []
    for k in range(1, pieces + 1):
        end = Arc(arc.center, arc.radius, arc.start_deg, arc.start_deg + sweep * k / pieces).end
        out.append(f"A {arc.radius:.3f},{arc.radius:.3f} 0 0 {sweep_flag} {_fmt(end)}")
    return out


def svg_path_d(path: SlicePath) -> str:
    """Translate a SlicePath into SVG path data."""
    d: List[str] = []
    pen: Optional[Point] = None
    for cmd in path.commands:
        if isinstance(cmd, MoveTo):
            d.append(f"M {_fmt(cmd.point)}")
            pen = cmd.point
        elif isinstance(cmd, LineTo):
            d.append(f"L {_fmt(cmd.point)}")
            pen = cmd.point
        elif isinstance(cmd, Arc):
            if pen is None:
                d.append(f"M {_fmt(cmd.start)}")
            elif pen != cmd.start:
                d.append(f"L {_fmt(cmd.start)}")
            d.extend(_arc_segments(cmd))
            pen = cmd.end
        elif isinstance(cmd, ClosePath):
            d.append("Z")
    return " ".join(d)


# =======================
# Text helpers
# =======================
def _add_label_centered(dwg, text, x, y, fill, font_family, font_size):
    # centre vertically: baseline sits ~0.35em below the anchor
    baseline = y + font_size * 0.35
    dwg.add(dwg.text(
        text,
        insert=(x, baseline),
        text_anchor="middle",
        fill=fill,
        font_family=font_family,
        font_size=font_size,
    ))


# =======================
# Renderers
# =======================
def _paint(dwg, appearance: Any, key: str) -> str:
    """Fill value for an appearance: colour string, or (bottom, top) gradient."""
    if appearance is None:
        return "#cccccc"
    if isinstance(appearance, str):
        return appearance
    bottom, top = appearance
    grad = dwg.linearGradient(start=(0, 1), end=(0, 0), id=f"grad-{key}")
    grad.add_stop_color(offset=0, color=bottom)
    grad.add_stop_color(offset=1, color=top)
    dwg.defs.add(grad)
    return grad.get_paint_server()


def render_slices(
    dwg,
    slices: Sequence[PieSlice],
    cx: float,
    cy: float,
    outer_radius: float,
    ring_ratio: float = DEFAULT_INNER_RATIO,
    background: str = BACKGROUND,
    text_color: str = TEXT_COLOR,
    stroke_width: float = STROKE_WIDTH,
    font_family: str = FONT_MED_NAME,
    font_size: float = FONT_SIZE,
) -> None:
    center = Point(cx, cy)
    anchors = []
    for sl in slices:
        path, anchor = sl.build(center, outer_radius, ring_ratio)
        fill = _paint(dwg, sl.appearance, sl.id)
        dwg.add(dwg.path(
            d=svg_path_d(path),
            id=f"slice-{sl.id}",
            class_=f"slice index-{sl.index}",
            fill=fill,
            stroke=background if path.stroked else "none",
            stroke_width=stroke_width if path.stroked else 0,
        ))
        anchors.append(anchor)

    # labels last so no later slice paints over them
    for anchor in anchors:
        if anchor.visible:
            _add_label_centered(dwg, anchor.text, anchor.point.x, anchor.point.y,
                                text_color, font_family, font_size)


def donut_svg(
    svg_path,
    data: Dict[str, float],
    colors: Dict[str, Appearance],
    size: int = CHART_SIZE,
    ring_ratio: float = RING_RATIO,
    background: str = BACKGROUND,
    text_color: str = TEXT_COLOR,
    stroke_width: float = STROKE_WIDTH,
    font_family: str = FONT_MED_NAME,
    font_size: float = FONT_SIZE,
    margin: float = 2.0,               # keeps the separator stroke inside the canvas
) -> List[PieSlice]:
    """Write one donut chart for `data` (label -> value) and return its slices."""
    width = height = int(size)
    cx, cy = width / 2, height / 2
    outer_radius = min(width, height) / 2 - margin
    validate_geometry(outer_radius, ring_ratio)

    slices = make_slices(list(data.values()), [colors.get(lbl) for lbl in data.keys()])

    dwg = svgwrite.Drawing(svg_path, size=(width, height), profile="full")
    dwg.attribs["viewBox"] = f"0 0 {width} {height}"
    render_slices(dwg, slices, cx, cy, outer_radius, ring_ratio,
                  background=background, text_color=text_color, stroke_width=stroke_width,
                  font_family=font_family, font_size=font_size)
    dwg.save()
    return slices


# =======================
# Colors + IO
# =======================
def _stable_color_cycle(n: int) -> List[str]:
    base = list(_CFG.get("palette", {}).get("colors", [])) or [
        "#41b8d5",  # blue
        "#a9d6b9",  # green
        "#2d8bba",  # dark blue
        "#505870",  # navy
        "#7d87a4",  # dark grey
        "#c4dce8",  # grey
        "#f4a261",  # orange
        "#2E8BC0",  # deep sky blue
    ]
    if n <= len(base):
        return base[:n]
    out = list(base)
    def tweak(hx, k):
        r = int(hx[1:3], 16); g = int(hx[3:5], 16); b = int(hx[5:7], 16)
        r = max(0, min(255, int(r * (0.9 + 0.02 * k))))
        g = max(0, min(255, int(g * (0.9 + 0.02 * k))))
        b = max(0, min(255, int(b * (0.9 + 0.02 * k))))
        return f"#{r:02x}{g:02x}{b:02x}"
    k = 1
    while len(out) < n:
        for c in base:
            out.append(tweak(c, k))
            if len(out) >= n:
                break
        k += 1
    return out


def label_color_map(labels: Iterable[str]) -> Dict[str, Appearance]:
    """Palette colour per label; [gradients] entries in config override."""
    labels = list(labels)
    colors: Dict[str, Appearance] = dict(zip(labels, _stable_color_cycle(len(labels))))
    for lbl, pair in (_CFG.get("gradients", {}) or {}).items():
        if lbl in colors and len(pair) == 2:
            colors[lbl] = (str(pair[0]), str(pair[1]))
    return colors


def _safe_slug(text: str) -> str:
    s = "".join(ch if ch.isalnum() else "_" for ch in str(text).strip())
    while "__" in s:
        s = s.replace("__", "_")
    return s.strip("_") or "chart"


def _to_png(svg_path: str, png_path: str) -> bool:
    """Convert SVG → PNG. Prefer rsvg-convert; fallback to cairosvg if installed."""
    rsvg = shutil.which("rsvg-convert")
    if rsvg:
        try:
            subprocess.run([rsvg, svg_path, "-a", "-f", "png", "-o", png_path], check=True)
            return True
        except (OSError, subprocess.CalledProcessError) as exc:
            print(f"[warn] PNG not created for {svg_path}: {exc}")
            return False
    try:
        import cairosvg  # type: ignore
        cairosvg.svg2png(url=svg_path, write_to=png_path)
        return True
    except Exception as exc:
        print(f"[warn] PNG not created for {svg_path}: {exc}")
        return False


# =======================
# Table → chart data
# =======================
def _read_table(path: str, sheet_name: str | None) -> pd.DataFrame:
    suffix = Path(path).suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path)
    return pd.read_excel(path, sheet_name=sheet_name or 0)


def load_chart_data(
    data_path: str = DATA_PATH,
    sheet_name: str | None = SHEET_NAME,
    group_col: str = GROUP_COL,
    label_col: str = LABEL_COL,
    value_col: str = VALUE_COL,
) -> Dict[str, Dict[str, float]]:
    """Long-form table → {group: {label: value}}, in first-appearance order.

    Duplicate (group, label) rows are summed; non-numeric values count as 0.
    Negative values are kept so chart construction can reject them.
    """
    df = _read_table(data_path, sheet_name)
    missing = [c for c in (group_col, label_col, value_col) if c not in df.columns]
    if missing:
        raise ValueError(f"Column(s) {missing} not found. Columns present: {list(df.columns)}")

    df = df[[group_col, label_col, value_col]].copy().dropna(subset=[group_col, label_col])
    df[value_col] = pd.to_numeric(df[value_col], errors="coerce").fillna(0)

    grouped = (
        df.groupby([group_col, label_col], sort=False)[value_col]
          .sum()
          .reset_index()
    )
    out: Dict[str, Dict[str, float]] = {}
    for group, label, value in grouped[[group_col, label_col, value_col]].values.tolist():
        out.setdefault(str(group), {})[str(label)] = float(value)
    return out


# =======================
# Table → multiple charts
# =======================
def generate_donuts(
    data_path: str = DATA_PATH,
    out_dir: str = CHART_DIR,
    sheet_name: str | None = SHEET_NAME,
    group_col: str = GROUP_COL,
    label_col: str = LABEL_COL,
    value_col: str = VALUE_COL,
    *,
    size: int = CHART_SIZE,
    ring_ratio: float = RING_RATIO,
    png: bool = True,
) -> List[Tuple[str, str, Optional[str]]]:
    Path(out_dir).mkdir(parents=True, exist_ok=True)
    charts = load_chart_data(data_path, sheet_name, group_col, label_col, value_col)

    # one colour per label across all charts so the same label always looks the same
    all_labels: List[str] = []
    for data in charts.values():
        all_labels.extend(lbl for lbl in data if lbl not in all_labels)
    colors = label_color_map(all_labels)

    emitted: List[Tuple[str, str, Optional[str]]] = []
    for group, data in charts.items():
        base = _safe_slug(group)
        svg_path = os.path.join(out_dir, f"{base}.svg")
        try:
            donut_svg(svg_path, data, colors, size=size, ring_ratio=ring_ratio)
        except PieChartError as exc:
            print(f"[skip] {group}: {exc}")
            continue

        png_path: Optional[str] = os.path.join(out_dir, f"{base}.png")
        if not (png and _to_png(svg_path, png_path)):
            png_path = None
        emitted.append((group, svg_path, png_path))
        print(f"[OK] {group} -> {svg_path}")

    return emitted


if __name__ == "__main__":
    results = generate_donuts(DATA_PATH, CHART_DIR)
    print(f"Emitted {len(results)} charts to '{CHART_DIR}'")
    for group, svg, png in results:
        print(f"- {group}: {os.path.basename(svg)}  |  {os.path.basename(png) if png else '-'}")
