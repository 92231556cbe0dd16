from thumbnail_service.text_metrics import FontSpec, HeuristicTextMetrics
from thumbnail_service.text_wrap import (
    ELLIPSIS,
    truncate_to_width,
    wrap_text,
    wrap_text_to_width,
    wrap_topic_text,
)

FONT = FontSpec(10)  # heuristic: 6 px per character


def test_wrap_text_character_budget():
    assert wrap_text("the quick brown fox jumps", 10) == ["the quick", "brown fox", "jumps"]
    assert wrap_text("", 10) == []
    assert wrap_text("supercalifragilistic word", 5) == ["supercalifragilistic", "word"]


def test_wrap_to_width_greedy():
    m = HeuristicTextMetrics()
    # 60 px fits ten characters
    assert wrap_text_to_width("the quick brown fox jumps", 60, m, FONT) == ["the quick", "brown fox", "jumps"]


def test_wrap_to_width_empty_and_degenerate_inputs():
    m = HeuristicTextMetrics()
    text = "Announcing the general availability of something new"
    assert wrap_text_to_width("", 100, m, FONT) == []
    assert wrap_text_to_width(text, 100, None, FONT) == wrap_text(text, 22)
    assert wrap_text_to_width(text, 0, m, FONT) == wrap_text(text, 22)
    assert wrap_text_to_width(text, float("inf"), m, FONT) == wrap_text(text, 22)


def test_wrap_to_width_keeps_long_word_whole():
    m = HeuristicTextMetrics()
    lines = wrap_text_to_width("a Microsoft.Extensions.AI b", 60, m, FONT)
    assert lines == ["a", "Microsoft.Extensions.AI", "b"]


def test_wrapped_lines_fit_or_are_single_words():
    m = HeuristicTextMetrics()
    text = "Building intelligent apps with .NET Aspire and the new AI templates"
    for line in wrap_text_to_width(text, 90, m, FONT):
        assert m.measure(line, FONT) <= 90 or " " not in line


def test_truncate_returns_fitting_text_unchanged():
    m = HeuristicTextMetrics()
    assert truncate_to_width("short", 100, m, FONT) == "short"


def test_truncate_adds_ellipsis_and_fits():
    m = HeuristicTextMetrics()
    result = truncate_to_width("abcdefghijklmnopqrstuvwxyz", 60, m, FONT)
    assert result.endswith(ELLIPSIS)
    assert m.measure(result, FONT) <= 60
    # the longest prefix that fits: nine characters plus the ellipsis
    assert result == "abcdefghi" + ELLIPSIS


def test_truncate_trims_trailing_space_before_ellipsis():
    m = HeuristicTextMetrics()
    result = truncate_to_width("abcd efghijkl", 36, m, FONT)
    assert result == "abcd" + ELLIPSIS


def test_truncate_when_nothing_fits():
    m = HeuristicTextMetrics()
    assert truncate_to_width("abcdef", 3, m, FONT) == ""


def test_wrap_topic_text_fixed_line_count():
    lines = wrap_topic_text("Building AI apps with the new .NET AI template", 18, 3)
    assert lines == ["Building AI apps", "with the new .NET", "AI template"]


def test_wrap_topic_text_last_line_takes_the_rest():
    lines = wrap_topic_text("one two three four five six seven eight nine ten", 9, 3)
    assert lines == ["one two", "three", "four five six seven eight nine ten"]


def test_wrap_topic_text_pads_short_topics():
    assert wrap_topic_text("Hello", 18, 3) == ["Hello", "", ""]
    assert wrap_topic_text("", 18, 3) == ["", "", ""]


def test_short_text_wraps_to_itself():
    m = HeuristicTextMetrics()
    assert wrap_text_to_width("  Hello World ", 1000, m, FONT) == ["Hello World"]


def test_wrapping_never_drops_words():
    m = HeuristicTextMetrics()
    text = "Minimal   APIs,\tnative AOT and\nthe new Blazor render modes explained"
    for width in (30, 60, 120, 400):
        lines = wrap_text_to_width(text, width, m, FONT)
        assert " ".join(lines) == " ".join(text.split())


def test_truncation_is_maximal():
    m = HeuristicTextMetrics()
    text = "Observability with OpenTelemetry in cloud native apps"
    for width in (25, 61, 100, 200):
        result = truncate_to_width(text, width, m, FONT)
        assert m.measure(result, FONT) <= width
        k = len(result) - len(ELLIPSIS)
        longer = text[: k + 1].rstrip() + ELLIPSIS
        assert len(longer) <= len(result) or m.measure(longer, FONT) > width


def test_truncate_to_non_positive_width_is_empty():
    m = HeuristicTextMetrics()
    assert truncate_to_width("abcdef", 0, m, FONT) == ""
    assert truncate_to_width("abcdef", -5, m, FONT) == ""
