import asyncio

import pytest

from thumbnail_service.tokens import Loading, Ready, TemplateCache, escape_xml, substitute


def test_escape_xml():
    assert escape_xml("""Tom & "Jerry" <b>'s</b>""") == "Tom &amp; &quot;Jerry&quot; &lt;b&gt;&apos;s&lt;/b&gt;"
    assert escape_xml(None) == ""
    assert escape_xml("") == ""


def test_substitute_both_marker_forms():
    out = substitute("<t>__TITLE__</t><s>{{TITLE}}</s>", {"TITLE": "Hi"})
    assert out == "<t>Hi</t><s>Hi</s>"


def test_substitute_replaces_every_occurrence():
    assert substitute("__A__-__A__-__A__", {"A": "x"}) == "x-x-x"


def test_substitute_leaves_unknown_markers():
    assert substitute("__A__ __B__", {"A": "1"}) == "1 __B__"


def test_substitute_none_is_empty():
    assert substitute("[__A__]", {"A": None}) == "[]"


def test_substitute_is_literal_and_does_not_rescan_values():
    out = substitute("__A__ __B__", {"A": "__B__ $1 \\g<0>", "B": "b"})
    assert out == "__B__ $1 \\g<0> b"


def test_substitute_prefers_the_longer_name():
    out = substitute("__GUEST_1__ __GUEST_1_NAME__", {"GUEST_1": "photo.png", "GUEST_1_NAME": "Ada"})
    assert out == "photo.png Ada"


def test_substitute_with_no_tokens():
    assert substitute("__A__", {}) == "__A__"
    assert substitute("", {"A": "x"}) == ""


def test_cache_loads_once_for_concurrent_requests():
    calls = []

    async def loader():
        calls.append(1)
        await asyncio.sleep(0.01)
        return "<svg/>"

    async def run():
        cache = TemplateCache()
        results = await asyncio.gather(*(cache.get("three", loader) for _ in range(5)))
        return cache, results

    cache, results = asyncio.run(run())
    assert results == ["<svg/>"] * 5
    assert len(calls) == 1
    assert isinstance(cache.peek("three"), Ready)
    assert cache.get_ready("three") == "<svg/>"


def test_cache_reports_loading_state():
    async def run():
        cache = TemplateCache()
        gate = asyncio.Event()

        async def loader():
            await gate.wait()
            return "content"

        pending = asyncio.ensure_future(cache.get("k", loader))
        await asyncio.sleep(0)
        state = cache.peek("k")
        gate.set()
        await pending
        return state, cache.get_ready("k")

    state, content = asyncio.run(run())
    assert isinstance(state, Loading)
    assert content == "content"


def test_cache_failed_load_is_forgotten():
    attempts = []

    async def failing():
        attempts.append(1)
        raise OSError("missing template")

    async def ok():
        return "fine"

    async def run():
        cache = TemplateCache()
        with pytest.raises(OSError):
            await cache.get("two", failing)
        assert cache.peek("two") is None
        return await cache.get("two", ok)

    assert asyncio.run(run()) == "fine"
    assert len(attempts) == 1


def test_resolved_document_is_stable_on_a_second_pass():
    once = substitute("<t>__A__ {{B}}</t>", {"A": "x", "B": "y"})
    assert substitute(once, {}) == once
    assert "__" not in once and "{{" not in once
