#!/usr/bin/env python3
"""
Streamlit UI for the donut chart builders. Both builders are driven by config.toml:
  1) donut.py               → SVG (+PNG) per chart, outputs to [paths.svg_dir]
  2) build_chart_pages.py   → one PDF page per chart, outputs to [paths.pdf_dir]

This app lets you upload the data table (Excel or CSV), run the builders, preview
the charts, and merge every chart page into an all‑in‑one ChartReport.pdf plus a
ZIP of the individual files.
"""
from __future__ import annotations
import shutil
import traceback
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import List

import pandas as pd
from pypdf import PdfReader, PdfWriter
import streamlit as st

import build_chart_pages
import donut

# ----------------------------
# Project layout & constants
# ----------------------------
HERE = Path(__file__).resolve().parent

# Defaults mirror config.toml keys; you can override from the sidebar
DEFAULT_SVG_DIR   = "charts"
DEFAULT_PAGES_DIR = "ChartPages"
MASTER_PDF_NAME   = "ChartReport.pdf"

# ----------------------------
# Helpers
# ----------------------------

def log(msg: str) -> None:
    st.session_state.setdefault("log", [])
    st.session_state.log.append(msg)


def reset_log() -> None:
    st.session_state["log"] = []

# ----------------------------
# Data containers
# ----------------------------

@dataclass
class BuilderOutputs:
    root: Path
    svg_dir: Path
    pages_dir: Path

# ----------------------------
# Core steps
# ----------------------------

def prepare_output_dirs(root: Path, clean: bool, svg_dir_name: str, pages_dir_name: str) -> BuilderOutputs:
    svg_dir = root / svg_dir_name
    pages_dir = root / pages_dir_name

    for p in (svg_dir, pages_dir):
        if clean and p.exists():
            shutil.rmtree(p, ignore_errors=True)
        p.mkdir(parents=True, exist_ok=True)
    return BuilderOutputs(root, svg_dir, pages_dir)


def zip_files(paths: List[Path], zip_path: Path) -> None:
    with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as z:
        for p in paths:
            z.write(p, arcname=p.name)


def merge_all_into_one(paths: List[Path], out_pdf: Path) -> int:
    """Concatenate PDFs in order; unreadable files are logged and skipped."""
    writer = PdfWriter()
    merged = 0
    for p in paths:
        try:
            r = PdfReader(str(p))
            for page in r.pages:
                writer.add_page(page)
            merged += 1
        except Exception as e:
            log(f"❌ Skipping {p.name} while building master PDF: {e}")
    with open(out_pdf, "wb") as f:
        writer.write(f)
    return merged

# ----------------------------
# Streamlit UI
# ----------------------------

def main() -> None:
    st.set_page_config(page_title="Donut Chart Builder", page_icon="🍩", layout="centered")
    if "log" not in st.session_state:
        reset_log()

    st.title("Donut Chart Builder")
    st.caption("Upload a long-form table, build one donut per group, and merge the chart pages.")

    # Sidebar options
    with st.sidebar:
        st.header("Options")
        sheet_name = st.text_input("Excel sheet name", value=donut.SHEET_NAME)
        group_col = st.text_input("Chart (group) column", value=donut.GROUP_COL)
        label_col = st.text_input("Slice label column", value=donut.LABEL_COL)
        value_col = st.text_input("Value column", value=donut.VALUE_COL)
        ring_ratio = st.slider("Donut hole (inner / outer radius)", 0.0, 0.9, float(donut.RING_RATIO), 0.05)
        svg_dir_name = st.text_input("SVG output folder", value=DEFAULT_SVG_DIR)
        pages_dir_name = st.text_input("PDF pages output folder", value=DEFAULT_PAGES_DIR)
        clean_run = st.checkbox("Clean previous outputs first", value=True)
        st.caption("If folders contain old files, enable cleanup to avoid stale merges.")

    uploaded = st.file_uploader("Upload data (.xlsx or .csv)", type=["xlsx", "csv"], accept_multiple_files=False)

    detect_cols = st.columns(2)
    with detect_cols[0]:
        run_svg = st.toggle("Build SVG charts", value=True)
    with detect_cols[1]:
        run_pages = st.toggle("Build PDF pages", value=True)

    st.divider()
    run = st.button("Build charts", type="primary", use_container_width=True, disabled=uploaded is None)

    st.write("### Log")
    log_area = st.empty()
    log_area.code("\n".join(st.session_state.log) or "Ready.", language="text")

    if not run:
        return

    reset_log()
    if not uploaded:
        st.error("Please upload a data file first.")
        return

    # Save the upload to a run directory under ./runs/YYYYMMDD_HHMMSS
    run_root = HERE / "runs" / pd.Timestamp.now(tz=None).strftime("%Y%m%d_%H%M%S")
    run_root.mkdir(parents=True, exist_ok=True)
    data_path = run_root / f"source{Path(uploaded.name).suffix.lower()}"
    with open(data_path, "wb") as f:
        f.write(uploaded.read())

    outs = prepare_output_dirs(run_root, clean_run, svg_dir_name, pages_dir_name)
    columns = dict(sheet_name=sheet_name or None, group_col=group_col, label_col=label_col, value_col=value_col)

    charts = []
    pages: List[Path] = []
    try:
        if run_svg:
            log("▶️ Building SVG charts …")
            charts = donut.generate_donuts(str(data_path), str(outs.svg_dir), ring_ratio=ring_ratio, **columns)
            log(f"✅ {len(charts)} chart(s) → {outs.svg_dir}")
        else:
            log("⏩ Skipping SVG charts.")
        log_area.code("\n".join(st.session_state.log), language="text")

        if run_pages:
            log("▶️ Building PDF pages …")
            pages = build_chart_pages.generate_chart_pages(
                str(data_path), str(outs.pages_dir), ring_ratio=ring_ratio, **columns
            )
            log(f"✅ {len(pages)} page(s) → {outs.pages_dir}")
        else:
            log("⏩ Skipping PDF pages.")
        log_area.code("\n".join(st.session_state.log), language="text")

    except Exception as e:
        st.error("Run failed. See log below.")
        log(f"❌ Fatal error: {e}\n{traceback.format_exc()}")
        log_area.code("\n".join(st.session_state.log), language="text")
        return

    # Preview
    for group, svg_path, _png in charts:
        st.write(f"**{group}**")
        st.markdown(Path(svg_path).read_text(encoding="utf-8"), unsafe_allow_html=True)

    # Download options
    files = [Path(svg) for _, svg, _ in charts] + [Path(png) for _, _, png in charts if png] + pages
    if pages:
        master_pdf = outs.root / MASTER_PDF_NAME
        merged = merge_all_into_one(pages, master_pdf)
        log(f"Merged {merged} page(s) → {master_pdf.name}")
        st.download_button(
            f"Download {MASTER_PDF_NAME} (all‑in‑one)",
            data=master_pdf.read_bytes(),
            file_name=master_pdf.name,
            mime="application/pdf",
            use_container_width=True,
        )
    if files:
        zip_path = outs.root / "Charts.zip"
        zip_files(files, zip_path)
        st.success(f"Done. Built {len(charts)} chart(s) and {len(pages)} page(s).")
        st.download_button(
            "Download ALL charts (ZIP)",
            data=zip_path.read_bytes(),
            file_name=zip_path.name,
            mime="application/zip",
            use_container_width=True,
        )

    # Persist log view
    log_area.code("\n".join(st.session_state.log), language="text")


if __name__ == "__main__":
    main()
