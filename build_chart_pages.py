# build_chart_pages.py
# Generate one PDF page per chart: title + donut drawn with reportlab from pie_geometry's
# slice outlines, optionally stamped onto PageTemplate.pdf.
# - Same data source and label colours as donut.py
# - Labels centred inside slices, hidden on slices <= 8%

import io
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

try:
    import tomllib  # py3.11+
except ImportError:
    import tomli as tomllib  # type: ignore

from reportlab.pdfgen import canvas
from reportlab.lib.pagesizes import letter
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.lib import colors
from reportlab.lib.colors import HexColor
from pypdf import PdfReader, PdfWriter

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
from donut import load_chart_data, label_color_map, _safe_slug

# ========= load config (static brand + paths only) =========
def _load_cfg() -> dict:
    here = Path(__file__).parent
    cfg_path = here / "Configs" / "config.toml"
    if cfg_path.exists():
        with open(cfg_path, "rb") as f:
            return tomllib.load(f)
    return {}

_cfg = _load_cfg()

# ========= CONFIG (from config.toml, with sane defaults) =========
HERE = Path(__file__).parent

DATA_PATH    = str(HERE / _cfg.get("paths", {}).get("data", "ChartData.xlsx"))
SHEET_NAME   = _cfg.get("paths", {}).get("sheet", "Chart Data - LongForm")
OUTPUT_DIR   = str(HERE / _cfg.get("paths", {}).get("pdf_dir", "ChartPages"))
_template    = _cfg.get("paths", {}).get("page_template_pdf", "")
TEMPLATE_PDF = str(HERE / _template) if _template else ""

GROUP_COL = _cfg.get("columns", {}).get("group", "Chart")
LABEL_COL = _cfg.get("columns", {}).get("label", "Label")
VALUE_COL = _cfg.get("columns", {}).get("value", "Value")

FONT_BOLD_NAME = _cfg.get("fonts", {}).get("bold_name", "HKGrotesk-Bold")
FONT_MED_NAME  = _cfg.get("fonts", {}).get("medium_name", "HKGrotesk-Medium")
FONT_BOLD_PATH = str(HERE / _cfg.get("fonts", {}).get("bold_path", "Configs/hk-grotesk.bold.ttf"))
FONT_MED_PATH  = str(HERE / _cfg.get("fonts", {}).get("medium_path", "Configs/hk-grotesk.medium.ttf"))

RING_RATIO   = float(_cfg.get("chart", {}).get("ring_ratio", DEFAULT_INNER_RATIO))
BACKGROUND   = _cfg.get("chart", {}).get("background", "#ffffff")
TEXT_COLOR   = _cfg.get("chart", {}).get("text_color", BACKGROUND)
STROKE_WIDTH = float(_cfg.get("chart", {}).get("stroke_width", 2))

# ========= PAGE LAYOUT (tweak here) =========
TITLE_X: float = 72.0
TITLE_Y_OFFSET: float = 90.0      # measured down from top of page
TITLE_FONT_SIZE: int = 28
CHART_RADIUS: float = 200.0       # outer radius in points
CHART_CENTER_Y_OFFSET: float = 380.0
LABEL_FONT_SIZE: int = 16


# ========= FONTS =========
def register_fonts() -> Tuple[str, str]:
    """Register the brand TTFs; fall back to Helvetica for any that fail.

    Returns the (bold, medium) font names to draw with.
    """
    chosen = []
    for name, path, fallback in (
        (FONT_BOLD_NAME, FONT_BOLD_PATH, "Helvetica-Bold"),
        (FONT_MED_NAME, FONT_MED_PATH, "Helvetica"),
    ):
        try:
            pdfmetrics.registerFont(TTFont(name, path))
            chosen.append(name)
        except Exception as exc:
            print(f"[warn] font {name} not registered ({exc}); using {fallback}")
            chosen.append(fallback)
    return chosen[0], chosen[1]


# ========= SLICE → PDF PATH =========
def _to_page(origin: Tuple[float, float], p: Point) -> Tuple[float, float]:
    # slice geometry is y-down; PDF is y-up
    return origin[0] + p.x, origin[1] - p.y


def _pdf_path(c: canvas.Canvas, path: SlicePath, origin: Tuple[float, float]):
    """Build a reportlab path from slice commands.

    Angles flip sign on the way to PDF space, so a screen arc a0 → a1 becomes
    startAng=-a0, extent=-(a1 - a0).
    """
    p = c.beginPath()
    for cmd in path.commands:
        if isinstance(cmd, MoveTo):
            p.moveTo(*_to_page(origin, cmd.point))
        elif isinstance(cmd, LineTo):
            p.lineTo(*_to_page(origin, cmd.point))
        elif isinstance(cmd, Arc):
            sweep = cmd.end_deg - cmd.start_deg
            if sweep == 0:
                p.lineTo(*_to_page(origin, cmd.start))
                continue
            cx, cy = _to_page(origin, cmd.center)
            r = cmd.radius
            p.arcTo(cx - r, cy - r, cx + r, cy + r, startAng=-cmd.start_deg, extent=-sweep)
        elif isinstance(cmd, ClosePath):
            p.close()
    return p


def _draw_slice(c: canvas.Canvas, sl: PieSlice, path: SlicePath, origin: Tuple[float, float],
                background: str, stroke_width: float) -> None:
    if path.is_empty:
        return  # nothing to fill, and no separator for empty slices

    appearance = sl.appearance or "#cccccc"
    if isinstance(appearance, str):
        c.setFillColor(HexColor(appearance))
        c.setStrokeColor(HexColor(background))
        c.setLineWidth(stroke_width)
        c.drawPath(_pdf_path(c, path, origin), stroke=1 if path.stroked else 0, fill=1)
        return

    # (bottom, top) gradient across the slice's own bounding box
    bottom, top = appearance
    ys = [_to_page(origin, pt)[1] for pt in path.polygon()]
    c.saveState()
    c.clipPath(_pdf_path(c, path, origin), stroke=0, fill=0)
    c.linearGradient(origin[0], min(ys), origin[0], max(ys),
                     (HexColor(bottom), HexColor(top)), extend=True)
    c.restoreState()
    if path.stroked:
        c.setStrokeColor(HexColor(background))
        c.setLineWidth(stroke_width)
        c.drawPath(_pdf_path(c, path, origin), stroke=1, fill=0)


# ========= PAGE =========
def paint_chart_page(
    title: str,
    slices: Sequence[PieSlice],
    ring_ratio: float = RING_RATIO,
    background: str = BACKGROUND,
    text_color: str = TEXT_COLOR,
    stroke_width: float = STROKE_WIDTH,
    fonts: Optional[Tuple[str, str]] = None,
) -> bytes:
    validate_geometry(CHART_RADIUS, ring_ratio)
    bold, medium = fonts or ("Helvetica-Bold", "Helvetica")
    width, height = letter
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)

    # Title block
    c.setFillColor(colors.black)
    c.setFont(bold, TITLE_FONT_SIZE)
    c.drawString(TITLE_X, height - TITLE_Y_OFFSET, title)

    # Donut: geometry is built around (0, 0) and shifted to the page centre
    origin = (width / 2, height - CHART_CENTER_Y_OFFSET)
    anchors = []
    for sl in slices:
        path, anchor = sl.build(Point(0.0, 0.0), CHART_RADIUS, ring_ratio)
        _draw_slice(c, sl, path, origin, background, stroke_width)
        anchors.append(anchor)

    c.setFillColor(HexColor(text_color))
    c.setFont(medium, LABEL_FONT_SIZE)
    for anchor in anchors:
        if anchor.visible:
            x, y = _to_page(origin, anchor.point)
            c.drawCentredString(x, y - LABEL_FONT_SIZE * 0.35, anchor.text)

    c.showPage()
    c.save()
    buf.seek(0)
    return buf.read()


def merge_template(template_pdf: str, page_bytes: bytes, out_path: Path):
    """Stamp the chart page over the template's first page (or write it as-is)."""
    if not template_pdf or not Path(template_pdf).exists():
        with open(out_path, "wb") as f:
            f.write(page_bytes)
        return
    base_reader = PdfReader(template_pdf)
    base_page = base_reader.pages[0]
    overlay_reader = PdfReader(io.BytesIO(page_bytes))
    overlay_page = overlay_reader.pages[0]
    base_page.merge_page(overlay_page)
    writer = PdfWriter()
    writer.add_page(base_page)
    with open(out_path, "wb") as f:
        writer.write(f)


def generate_chart_pages(
    data_path: str = DATA_PATH,
    out_dir: str = OUTPUT_DIR,
    sheet_name: Optional[str] = SHEET_NAME,
    group_col: str = GROUP_COL,
    label_col: str = LABEL_COL,
    value_col: str = VALUE_COL,
    *,
    ring_ratio: float = RING_RATIO,
    template_pdf: str = TEMPLATE_PDF,
) -> List[Path]:
    fonts = register_fonts()
    outdir = Path(out_dir)
    outdir.mkdir(parents=True, exist_ok=True)

    charts: Dict[str, Dict[str, float]] = load_chart_data(data_path, sheet_name, group_col, label_col, value_col)
    all_labels: List[str] = []
    for data in charts.values():
        all_labels.extend(lbl for lbl in data if lbl not in all_labels)
    label_colors = label_color_map(all_labels)

    written: List[Path] = []
    for group, data in charts.items():
        out_path = outdir / f"{_safe_slug(group)}.pdf"
        try:
            slices = make_slices(list(data.values()), [label_colors.get(lbl) for lbl in data])
            page = paint_chart_page(group, slices, ring_ratio=ring_ratio, fonts=fonts)
        except PieChartError as exc:
            print(f"[skip] {group}: {exc}")
            continue
        merge_template(template_pdf, page, out_path)
        written.append(out_path)
        print(f"[OK] {group} -> {out_path}")
    return written


# ========= MAIN =========
def main():
    generate_chart_pages(DATA_PATH, OUTPUT_DIR)

if __name__ == "__main__":
    main()
