"""Tests for the PDF page builder and the app's merge helpers."""

import io
import zipfile

import pytest
from pypdf import PdfReader
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

import app
import build_chart_pages
from pie_geometry import InvalidGeometry, make_slices


def _text(pdf_bytes):
    reader = PdfReader(io.BytesIO(pdf_bytes))
    return len(reader.pages), "".join(page.extract_text() for page in reader.pages)


def _template(path):
    c = canvas.Canvas(str(path), pagesize=letter)
    c.drawString(72, 40, "TEMPLATE FOOTER")
    c.showPage()
    c.save()


@pytest.fixture
def long_csv(tmp_path):
    csv = tmp_path / "data.csv"
    csv.write_text(
        "Chart,Label,Value\n"
        "Budget,Rent,1\n"
        "Budget,Food,1\n"
        "Budget,Savings,5\n"
        "Single,Only,4\n"
        "Broken,Only,-1\n",
        encoding="utf-8",
    )
    return csv


def test_paint_chart_page_has_title_and_labels():
    slices = make_slices([1, 1, 5], ["#41b8d5", "#a9d6b9", "#2d8bba"])
    pages, text = _text(build_chart_pages.paint_chart_page("Budget", slices))
    assert pages == 1
    assert "Budget" in text
    assert text.count("14%") == 2
    assert "71%" in text


def test_paint_chart_page_handles_degenerate_slices():
    slices = make_slices([0, 1, 0], ["#41b8d5", ("#000000", "#ffffff"), "#2d8bba"])
    pages, text = _text(build_chart_pages.paint_chart_page("Ring", slices))
    assert pages == 1
    assert "100%" in text


def test_paint_chart_page_all_zero_series():
    _pages, text = _text(build_chart_pages.paint_chart_page("Zeros", make_slices([0, 0])))
    assert text.count("50%") == 2


def test_paint_chart_page_rejects_bad_ratio():
    with pytest.raises(InvalidGeometry):
        build_chart_pages.paint_chart_page("Bad", make_slices([1]), ring_ratio=1.0)


def test_merge_template_stamps_over_template(tmp_path):
    template = tmp_path / "template.pdf"
    _template(template)
    out = tmp_path / "out.pdf"
    page = build_chart_pages.paint_chart_page("Stamped", make_slices([1, 3]))
    build_chart_pages.merge_template(str(template), page, out)
    pages, text = _text(out.read_bytes())
    assert pages == 1
    assert "TEMPLATE FOOTER" in text
    assert "Stamped" in text


def test_merge_template_without_template_writes_page(tmp_path):
    out = tmp_path / "out.pdf"
    page = build_chart_pages.paint_chart_page("Plain", make_slices([1]))
    build_chart_pages.merge_template("", page, out)
    assert out.read_bytes() == page


def test_generate_chart_pages(long_csv, tmp_path, capsys):
    written = build_chart_pages.generate_chart_pages(
        str(long_csv), str(tmp_path / "pages"), None, "Chart", "Label", "Value", template_pdf=""
    )
    assert [p.name for p in written] == ["Budget.pdf", "Single.pdf"]
    out = capsys.readouterr().out
    assert "[skip] Broken" in out
    assert "[OK] Budget" in out


def test_app_merges_and_zips_pages(long_csv, tmp_path):
    pages = build_chart_pages.generate_chart_pages(
        str(long_csv), str(tmp_path / "pages"), None, "Chart", "Label", "Value", template_pdf=""
    )
    master = tmp_path / "ChartReport.pdf"
    assert app.merge_all_into_one(pages, master) == 2
    assert len(PdfReader(str(master)).pages) == 2

    zip_path = tmp_path / "Charts.zip"
    app.zip_files(pages, zip_path)
    with zipfile.ZipFile(zip_path) as z:
        assert sorted(z.namelist()) == ["Budget.pdf", "Single.pdf"]


def test_app_prepare_output_dirs_cleans(tmp_path):
    stale = tmp_path / "charts" / "old.svg"
    stale.parent.mkdir()
    stale.write_text("<svg/>")
    outs = app.prepare_output_dirs(tmp_path, True, "charts", "pages")
    assert outs.svg_dir.exists() and outs.pages_dir.exists()
    assert not stale.exists()
