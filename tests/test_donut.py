"""Tests for the SVG renderer and table loader in :mod:`donut`."""

import xml.etree.ElementTree as ET

import pytest

import donut
from pie_geometry import AngleRange, InvalidInput, Point, slice_path

SVG = "{http://www.w3.org/2000/svg}"


def _parse(svg_file):
    root = ET.parse(svg_file).getroot()
    paths = [p for p in root.iter(f"{SVG}path") if p.get("id", "").startswith("slice-")]
    texts = [t.text for t in root.iter(f"{SVG}text")]
    return root, paths, texts


@pytest.fixture
def long_csv(tmp_path):
    csv = tmp_path / "data.csv"
    csv.write_text(
        "Chart,Label,Value\n"
        "Budget,Rent,1\n"
        "Budget,Food,1\n"
        "Budget,Savings,5\n"
        "Mix,Alpha,2\n"
        "Mix,Beta,n/a\n"
        "Mix,Alpha,1\n"
        "Broken,Alpha,-3\n",
        encoding="utf-8",
    )
    return csv


# =======================
# svg_path_d
# =======================
def test_svg_path_d_quarter_slice():
    d = donut.svg_path_d(slice_path(AngleRange(0, 0.0, 90.0), Point(100.0, 100.0), 100.0, 0.4))
    assert d.startswith("M 200.000,100.000 A 100.000,100.000 0 0 1 100.000,200.000")
    assert "L 100.000,140.000" in d
    assert "A 40.000,40.000 0 0 0 140.000,100.000" in d
    assert d.endswith("Z")
    assert d.count("A ") == 2


def test_svg_path_d_splits_full_ring_into_half_arcs():
    d = donut.svg_path_d(slice_path(AngleRange(0, 0.0, 360.0), Point(0.0, 0.0), 10.0, 0.4))
    assert d.count("A 10.000,10.000") == 2
    assert d.count("A 4.000,4.000") == 2
    assert "0 0 1 -10.000,0.000" in d


def test_svg_path_d_zero_width_has_no_arcs():
    d = donut.svg_path_d(slice_path(AngleRange(0, 45.0, 45.0), Point(0.0, 0.0), 10.0, 0.4))
    assert "A " not in d


# =======================
# donut_svg
# =======================
def test_donut_svg_writes_slices_and_labels(tmp_path):
    out = tmp_path / "chart.svg"
    slices = donut.donut_svg(
        str(out),
        {"Rent": 1, "Food": 1, "Savings": 5},
        {"Rent": "#41b8d5", "Food": "#a9d6b9", "Savings": "#2d8bba"},
        size=200,
    )
    _root, paths, texts = _parse(out)
    assert [p.get("id") for p in paths] == [f"slice-{s.id}" for s in slices]
    assert [p.get("fill") for p in paths] == ["#41b8d5", "#a9d6b9", "#2d8bba"]
    assert all(p.get("stroke") == donut.BACKGROUND for p in paths)
    assert texts == ["14%", "14%", "71%"]


def test_donut_svg_zero_value_slice_is_not_stroked(tmp_path):
    out = tmp_path / "chart.svg"
    donut.donut_svg(str(out), {"a": 3, "b": 0, "c": 1}, {})
    _root, paths, texts = _parse(out)
    assert len(paths) == 3
    assert paths[1].get("stroke") == "none"
    assert paths[0].get("fill") == "#cccccc"
    assert texts == ["75%", "25%"]


def test_donut_svg_all_zero_draws_equal_slices(tmp_path):
    out = tmp_path / "chart.svg"
    donut.donut_svg(str(out), {"a": 0, "b": 0, "c": 0}, {})
    _root, _paths, texts = _parse(out)
    assert texts == ["33%", "33%", "33%"]


def test_donut_svg_small_slice_label_hidden(tmp_path):
    out = tmp_path / "chart.svg"
    donut.donut_svg(str(out), {"big": 92, "small": 8}, {})
    _root, _paths, texts = _parse(out)
    assert texts == ["92%"]


def test_donut_svg_gradient_appearance(tmp_path):
    out = tmp_path / "chart.svg"
    slices = donut.donut_svg(str(out), {"a": 1, "b": 1}, {"a": ("#000000", "#ffffff"), "b": "#123456"})
    root, paths, _texts = _parse(out)
    grads = list(root.iter(f"{SVG}linearGradient"))
    assert len(grads) == 1
    assert grads[0].get("id") == f"grad-{slices[0].id}"
    assert paths[0].get("fill") == f"url(#grad-{slices[0].id})"
    assert paths[1].get("fill") == "#123456"


def test_donut_svg_rejects_negative_values(tmp_path):
    with pytest.raises(InvalidInput):
        donut.donut_svg(str(tmp_path / "x.svg"), {"a": 1, "b": -1}, {})


# =======================
# table loading + batch
# =======================
def test_load_chart_data_groups_and_sums(long_csv):
    data = donut.load_chart_data(str(long_csv), None, "Chart", "Label", "Value")
    assert list(data) == ["Budget", "Mix", "Broken"]
    assert data["Budget"] == {"Rent": 1.0, "Food": 1.0, "Savings": 5.0}
    assert data["Mix"] == {"Alpha": 3.0, "Beta": 0.0}
    assert data["Broken"] == {"Alpha": -3.0}


def test_load_chart_data_missing_column(long_csv):
    with pytest.raises(ValueError, match="not found"):
        donut.load_chart_data(str(long_csv), None, "Chart", "Label", "Amount")


def test_generate_donuts_skips_invalid_groups(long_csv, tmp_path, capsys):
    out_dir = tmp_path / "charts"
    emitted = donut.generate_donuts(
        str(long_csv), str(out_dir), None, "Chart", "Label", "Value", png=False
    )
    assert [g for g, _svg, _png in emitted] == ["Budget", "Mix"]
    assert all(png is None for _g, _svg, png in emitted)
    assert (out_dir / "Budget.svg").exists()
    assert not (out_dir / "Broken.svg").exists()
    assert "[skip] Broken" in capsys.readouterr().out


def test_generate_donuts_uses_one_color_per_label(long_csv, tmp_path):
    out_dir = tmp_path / "charts"
    donut.generate_donuts(str(long_csv), str(out_dir), None, "Chart", "Label", "Value", png=False)
    _r, budget_paths, _t = _parse(out_dir / "Budget.svg")
    _r, mix_paths, _t = _parse(out_dir / "Mix.svg")
    # labels in first-appearance order: Rent, Food, Savings, Alpha, Beta
    palette = donut._stable_color_cycle(5)
    assert [p.get("fill") for p in budget_paths] == palette[:3]
    assert [p.get("fill") for p in mix_paths] == palette[3:5]


# =======================
# helpers
# =======================
def test_stable_color_cycle_extends_palette():
    colors = donut._stable_color_cycle(20)
    assert len(colors) == 20
    assert colors[:8] == donut._stable_color_cycle(8)
    assert all(c.startswith("#") and len(c) == 7 for c in colors)


@pytest.mark.parametrize(
    "text, expected",
    [("Q3 Budget", "Q3_Budget"), ("  a--b  ", "a_b"), ("???", "chart")],
)
def test_safe_slug(text, expected):
    assert donut._safe_slug(text) == expected


def test_donut_svg_single_value_ring_has_no_seam(tmp_path):
    out = tmp_path / "ring.svg"
    donut.donut_svg(str(out), {"a": 1}, {"a": "#41b8d5"})
    _root, paths, texts = _parse(out)
    assert len(paths) == 1
    assert paths[0].get("stroke") == "none"
    assert texts == ["100%"]


def test_donut_svg_trailing_zero_is_not_stroked(tmp_path):
    out = tmp_path / "chart.svg"
    data = {f"v{i}": 1 for i in range(13)}
    data["zero"] = 0
    donut.donut_svg(str(out), data, {})
    _root, paths, _texts = _parse(out)
    assert paths[-1].get("stroke") == "none"
    assert all(p.get("stroke") == donut.BACKGROUND for p in paths[:-1])


def test_to_png_failed_converter_warns(tmp_path, monkeypatch, capsys):
    def failing_run(cmd, check):
        raise donut.subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr(donut.shutil, "which", lambda name: "/usr/bin/rsvg-convert")
    monkeypatch.setattr(donut.subprocess, "run", failing_run)
    assert donut._to_png(str(tmp_path / "a.svg"), str(tmp_path / "a.png")) is False
    assert "[warn] PNG not created" in capsys.readouterr().out
