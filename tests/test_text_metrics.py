import glob

import pytest

from thumbnail_service.text_metrics import (
    FontSpec,
    HeuristicTextMetrics,
    PillowTextMetrics,
    create_text_metrics,
)

_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
    "/Library/Fonts/Arial.ttf",
    "C:/Windows/Fonts/arial.ttf",
]


def _system_font():
    for path in _FONT_CANDIDATES + sorted(glob.glob("/usr/share/fonts/**/*.ttf", recursive=True)):
        try:
            create = PillowTextMetrics({"regular": path})
            create.measure("x", FontSpec(12))
            return path
        except OSError:
            continue
    return None


def test_heuristic_width_is_length_times_size():
    m = HeuristicTextMetrics()
    assert m.measure("hello", FontSpec(100)) == pytest.approx(5 * 100 * 0.6)
    assert m.measure("", FontSpec(100)) == 0.0
    assert not m.precise


def test_heuristic_width_is_monotonic_in_prefix():
    m = HeuristicTextMetrics()
    font = FontSpec(40, 700)
    text = "Announcing .NET 10"
    widths = [m.measure(text[:i], font) for i in range(len(text) + 1)]
    assert widths == sorted(widths)


def test_font_spec_css():
    assert FontSpec(88, 600, "Segoe UI").css() == "600 88px Segoe UI"


def test_create_text_metrics_without_fonts_uses_heuristic():
    assert isinstance(create_text_metrics(), HeuristicTextMetrics)


def test_create_text_metrics_with_unreadable_font_falls_back(tmp_path):
    bogus = tmp_path / "not-a-font.ttf"
    bogus.write_bytes(b"nope")
    assert isinstance(create_text_metrics(str(bogus), None, str(tmp_path / "missing.ttf")), HeuristicTextMetrics)


def test_pillow_metrics_needs_a_font():
    with pytest.raises(ValueError):
        PillowTextMetrics({})


def test_pillow_metrics_measures_with_font_file():
    path = _system_font()
    if path is None:
        pytest.skip("no TrueType font available on this host")
    m = create_text_metrics(path)
    assert m.precise
    small = m.measure("Thumbnail", FontSpec(20))
    large = m.measure("Thumbnail", FontSpec(40))
    assert small > 0
    assert large == pytest.approx(2 * small, rel=0.1)
    assert m.measure("", FontSpec(40)) == 0.0
    assert m.measure("ab", FontSpec(40)) <= m.measure("abc", FontSpec(40))
