from __future__ import annotations

import time

import pytest

from fluxgate.proxy_core.extract.service import StreamingExtractor, strip_to_text
from fluxgate.proxy_core.models.errors import ExtractionError
from fluxgate.proxy_core.models.interfaces import Selector

BASE = "https://example.com/dir/page.html"


def _extract(html: str, *, selector: Selector | None = None, chunk_size: int | None = None, **caps):
    extractor = StreamingExtractor(BASE, selector=selector, **caps)
    if chunk_size:
        for i in range(0, len(html), chunk_size):
            extractor.feed(html[i : i + chunk_size])
    else:
        extractor.feed(html)
    return extractor.close()


def test_title_whitespace_is_collapsed_and_trimmed():
    doc = _extract("<html><head><title>  Hello   World </title></head></html>")
    assert doc.title == "Hello World"


def test_title_concatenates_text_runs():
    doc = _extract("<title>Hello\n &amp;\t goodbye</title>")
    assert doc.title == "Hello & goodbye"


def test_meta_whitelist_by_name_or_property():
    doc = _extract(
        """
        <meta name="Description" content="A page">
        <meta property="og:title" content="OG Title">
        <meta name="twitter:card" content="summary">
        <meta name="generator" content="CMS 1.0">
        <meta name="keywords">
        <meta charset="utf-8">
        """
    )
    assert doc.meta == {
        "description": "A page",
        "og:title": "OG Title",
        "twitter:card": "summary",
    }


def test_images_are_absolute_and_deduplicated_in_document_order():
    doc = _extract(
        """
        <img src="a.png">
        <img src="/b.png">
        <img src="https://example.com/dir/a.png">
        <img src="">
        <img>
        <img src="//cdn.example.net/c.png"/>
        """
    )
    assert doc.images == [
        "https://example.com/dir/a.png",
        "https://example.com/b.png",
        "https://cdn.example.net/c.png",
    ]


def test_image_and_link_caps():
    html = "".join(f'<img src="/i{i}.png"><a href="/p{i}">p</a>' for i in range(150))
    doc = _extract(html)

    assert len(doc.images) == 50
    assert len(doc.links) == 100
    assert doc.images[0] == "https://example.com/i0.png"
    assert doc.images[-1] == "https://example.com/i49.png"
    assert doc.links[-1] == "https://example.com/p99"


def test_links_skip_fragments_and_script_protocols():
    doc = _extract(
        """
        <a href="#section">jump</a>
        <a href="javascript:void(0)">js</a>
        <a href=" JavaScript:alert(1)">js</a>
        <a href="vbscript:msgbox">vb</a>
        <a href="/about">about</a>
        <a href="other.html#part">other</a>
        <a href="http://[::1">broken</a>
        <a>no href</a>
        """
    )
    assert doc.links == [
        "https://example.com/about",
        "https://example.com/dir/other.html#part",
    ]


def test_videos_read_src_and_lazy_attribute():
    doc = _extract(
        """
        <video src="/movie.mp4"></video>
        <video data-src="lazy.mp4"><source src="clip.webm" type="video/webm"></video>
        <source src="/movie.mp4">
        """
    )
    assert doc.videos == [
        "https://example.com/movie.mp4",
        "https://example.com/dir/lazy.mp4",
        "https://example.com/dir/clip.webm",
    ]


def test_base_element_changes_resolution_for_following_references():
    doc = _extract(
        """
        <img src="before.png">
        <base href="https://cdn.example.net/assets/">
        <img src="after.png">
        """
    )
    assert doc.images == [
        "https://example.com/dir/before.png",
        "https://cdn.example.net/assets/after.png",
    ]


def test_class_selector_sibling_matches_keep_document_order():
    html = """
    <ul>
      <li class="foo first" data-n="1">One</li>
      <li class="bar">skip</li>
      <p class="foo" id="two">Two <b>bold</b> text</p>
      <div class="x foo">Three</div>
    </ul>
    """
    doc = _extract(html, selector=Selector(kind="class", value="foo"))

    assert [(f.tag, f.text) for f in doc.fragments] == [
        ("li", "One"),
        ("p", "Two bold text"),
        ("div", "Three"),
    ]
    assert doc.fragments[0].attributes == {"class": "foo first", "data-n": "1"}
    assert doc.fragments[1].attributes == {"class": "foo", "id": "two"}


def test_class_selector_does_not_match_substrings():
    doc = _extract('<div class="foobar">x</div>', selector=Selector(kind="class", value="foo"))
    assert doc.fragments == []


def test_nested_matches_send_text_to_innermost_fragment():
    html = '<div class="foo">outer <span class="foo">inner</span> tail</div> after'
    doc = _extract(html, selector=Selector(kind="class", value="foo"))

    assert [(f.tag, f.text) for f in doc.fragments] == [
        ("div", "outer tail"),
        ("span", "inner"),
    ]


def test_fragment_closes_unclosed_children_with_it():
    html = '<div id="main"><p>one<p>two</div><p>after</p>'
    doc = _extract(html, selector=Selector(kind="id", value="main"))

    assert len(doc.fragments) == 1
    assert doc.fragments[0].text == "onetwo"


def test_stray_end_tags_are_ignored_inside_fragment():
    html = '<div id="main">a</span> b</div>c'
    doc = _extract(html, selector=Selector(kind="id", value="main"))
    assert doc.fragments[0].text == "a b"


def test_void_element_match_yields_empty_text():
    html = '<img class="hero" src="/h.png"><p class="hero">caption</p>'
    doc = _extract(html, selector=Selector(kind="class", value="hero"))

    assert [(f.tag, f.text) for f in doc.fragments] == [("img", ""), ("p", "caption")]
    assert doc.fragments[0].attributes["src"] == "/h.png"


def test_self_closing_slash_on_non_void_element_is_ignored():
    html = '<div class="foo"/>text inside</div><p>after</p>'
    doc = _extract(html, selector=Selector(kind="class", value="foo"))
    assert [(f.tag, f.text) for f in doc.fragments] == [("div", "text inside")]


def test_unclosed_tags_are_not_tracked_without_selector():
    extractor = StreamingExtractor(BASE)
    extractor.feed("<p>" * 20000 + "</x>" * 20000)

    assert extractor._open_fragments == []
    assert not extractor._open_tags
    extractor.close()


def test_unclosed_tags_inside_match_are_counted_not_stacked():
    extractor = StreamingExtractor(BASE, selector=Selector(kind="id", value="main"))
    started = time.monotonic()
    extractor.feed('<div id="main">' + "<p>x" * 20000 + "</x>" * 20000 + "</div>tail")
    doc = extractor.close()

    assert time.monotonic() - started < 5
    assert len(extractor._open_fragments) == 0
    assert not extractor._open_tags
    assert doc.fragments[0].text == "x" * 20000


def test_closing_an_outer_child_closes_matches_opened_inside_it():
    html = '<div id="main"><p>one<span id="main">two</p>three</div>four'
    doc = _extract(html, selector=Selector(kind="id", value="main"))
    assert [(f.tag, f.text) for f in doc.fragments] == [("div", "onethree"), ("span", "two")]


def test_id_selector_without_match_returns_no_fragments():
    doc = _extract("<div id='other'>x</div>", selector=Selector(kind="id", value="main"))
    assert doc.fragments == []


def test_chunked_feed_matches_single_feed():
    html = """
    <html><head><title>Chunked  page</title>
    <meta name="description" content="streamed"></head>
    <body><div class="foo">alpha <i>beta</i></div>
    <a href="/x">x</a><img src="y.png"><div class="foo">gamma</div></body></html>
    """
    selector = Selector(kind="class", value="foo")
    whole = _extract(html, selector=selector)
    chunked = _extract(html, selector=selector, chunk_size=7)

    assert chunked == whole
    assert [f.text for f in chunked.fragments] == ["alpha beta", "gamma"]


def test_malformed_markup_does_not_abort_the_pass():
    html = '<div <img src="a.png"><a href="/ok">ok</a><p class="x"unterminated <title>T</title>'
    doc = _extract(html)
    assert "https://example.com/ok" in doc.links


def test_failing_handler_drops_only_that_item():
    extractor = StreamingExtractor(BASE)

    def boom(_attrs):
        raise ValueError("bad attribute")

    extractor._handlers["img"] = boom
    extractor.feed('<img src="a.png"><a href="/still-here">x</a>')
    doc = extractor.close()

    assert doc.images == []
    assert doc.links == ["https://example.com/still-here"]


def test_tokenizer_failure_surfaces_as_extraction_error(monkeypatch):
    extractor = StreamingExtractor(BASE)

    def broken(_end):
        raise RuntimeError("tokenizer exploded")

    monkeypatch.setattr(extractor, "goahead", broken)
    with pytest.raises(ExtractionError):
        extractor.feed("<p>x</p>")


def test_strip_to_text_removes_script_style_and_code_blocks():
    html = """
    <p>Hello</p>
    <SCRIPT type="text/javascript">
      alert(1);
    </SCRIPT>
    <style>p { color: red; }</style>
    <code>rm -rf /</code>
    <p>World</p>
    """
    text = strip_to_text(html)

    assert text == "Hello World"
    assert "alert" not in text


def test_strip_to_text_replaces_tags_with_spaces():
    assert strip_to_text("<p>one</p><p>two</p>\n\n<br>three") == "one two three"
