from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from html.parser import HTMLParser
from typing import Callable

from fluxgate.proxy_core.extract.url_set import CappedUrlSet
from fluxgate.proxy_core.models.errors import ExtractionError
from fluxgate.proxy_core.models.interfaces import (
    ExtractedDocument,
    ExtractedElement,
    Selector,
)
from fluxgate.services.logger import logger
from fluxgate.tools.url_utils import resolve_reference

META_WHITELIST = frozenset(
    {
        "description",
        "keywords",
        "author",
        "viewport",
        "og:title",
        "og:description",
        "og:image",
        "og:url",
        "og:type",
        "og:site_name",
        "twitter:card",
        "twitter:title",
        "twitter:description",
        "twitter:image",
    }
)

# Elements that never get an end tag; a trailing "/" on anything else is ignored.
VOID_ELEMENTS = frozenset(
    {
        "area", "base", "br", "col", "embed", "hr", "img", "input",
        "link", "meta", "param", "source", "track", "wbr",
    }
)

SCRIPT_PROTOCOLS = ("javascript:", "vbscript:")

_WHITESPACE_RE = re.compile(r"\s+")
_SCRIPT_RE = re.compile(r"<script\b[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<style\b[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_CODE_RE = re.compile(r"<code\b[^>]*>[\s\S]*?</code>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>?")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def strip_to_text(body: str) -> str:
    """Blunt tag strip used by the text format.

    script, style and code blocks are removed together with their content;
    every other tag becomes a space.
    """
    text = _SCRIPT_RE.sub("", body)
    text = _STYLE_RE.sub("", text)
    text = _CODE_RE.sub("", text)
    text = _TAG_RE.sub(" ", text)
    return collapse_whitespace(text)


@dataclass(slots=True)
class _OpenFragment:
    fragment: ExtractedElement
    # unclosed non-matching elements opened inside this fragment, by tag
    children: Counter = field(default_factory=Counter)


ElementHandler = Callable[[dict[str, str]], None]


class StreamingExtractor(HTMLParser):
    """Single forward pass over an HTML document.

    Chunks are pushed with ``feed`` as they arrive and ``close`` returns the
    collected ``ExtractedDocument``. No tree is built. Without a selector nothing is tracked; with one,
    only the open matches are kept, each with a per-tag count of the
    unclosed elements inside it, so a match knows where it ends.
    """

    def __init__(
        self,
        base_url: str,
        *,
        selector: Selector | None = None,
        max_images: int | None = 50,
        max_links: int | None = 100,
        max_videos: int | None = None,
    ):
        super().__init__(convert_charrefs=True)
        self.base_url = base_url
        self.selector = selector

        self._title_parts: list[str] = []
        self._title_depth = 0
        self._meta: dict[str, str] = {}
        self._images = CappedUrlSet(max_images)
        self._links = CappedUrlSet(max_links)
        self._videos = CappedUrlSet(max_videos)
        self._fragments: list[ExtractedElement] = []
        self._open_fragments: list[_OpenFragment] = []
        self._open_tags: Counter = Counter()
        self._document: ExtractedDocument | None = None

        self._handlers: dict[str, ElementHandler] = {
            "meta": self._on_meta,
            "img": self._on_img,
            "a": self._on_anchor,
            "video": self._on_video,
            "source": self._on_video,
            "base": self._on_base,
        }

    # --- public API ---

    def feed(self, data: str) -> None:
        if self._document is not None:
            raise ExtractionError("Extractor already closed")
        try:
            super().feed(data)
        except Exception as exc:
            raise ExtractionError(f"HTML extraction failed: {exc}") from exc

    def close(self) -> ExtractedDocument:
        if self._document is not None:
            return self._document
        try:
            super().close()
        except Exception as exc:
            raise ExtractionError(f"HTML extraction failed: {exc}") from exc

        for fragment in self._fragments:
            fragment.text = collapse_whitespace(fragment.text)

        self._document = ExtractedDocument(
            title=collapse_whitespace("".join(self._title_parts)),
            meta=dict(self._meta),
            images=self._images.to_list(),
            links=self._links.to_list(),
            videos=self._videos.to_list(),
            fragments=list(self._fragments),
        )
        return self._document

    # --- tokenizer events ---

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._open(tag, attrs, self_closing=False)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        self._open(tag, attrs, self_closing=True)

    def handle_endtag(self, tag: str) -> None:
        if tag == "title" and self._title_depth:
            self._title_depth -= 1

        if not self._open_tags[tag]:
            return
        for index in range(len(self._open_fragments) - 1, -1, -1):
            entry = self._open_fragments[index]
            if entry.children[tag]:
                _release(entry.children, tag)
                _release(self._open_tags, tag)
                # Matches opened after the closed child close with it.
                self._close_fragments(index + 1)
                return
            if entry.fragment.tag == tag:
                self._close_fragments(index)
                return

    def handle_data(self, data: str) -> None:
        if self._title_depth:
            self._title_parts.append(data)
        if self._open_fragments:
            self._open_fragments[-1].fragment.text += data

    # --- element handlers ---

    def _open(self, tag: str, raw_attrs: list[tuple[str, str | None]], *, self_closing: bool) -> None:
        attrs = {name: value or "" for name, value in raw_attrs}

        handler = self._handlers.get(tag)
        if handler is not None:
            try:
                handler(attrs)
            except Exception as exc:
                logger.debug(f"Dropped <{tag}> during extraction: {exc}")

        if tag == "title" and not self_closing:
            self._title_depth += 1

        if self.selector is None:
            return

        fragment = None
        if self.selector.matches(attrs):
            fragment = ExtractedElement(tag=tag, attributes=attrs)
            self._fragments.append(fragment)

        if tag in VOID_ELEMENTS:
            return
        if fragment is not None:
            self._open_fragments.append(_OpenFragment(fragment))
        elif self._open_fragments:
            self._open_fragments[-1].children[tag] += 1
        else:
            return
        self._open_tags[tag] += 1

    def _close_fragments(self, index: int) -> None:
        for entry in self._open_fragments[index:]:
            _release(self._open_tags, entry.fragment.tag)
            for tag, count in entry.children.items():
                _release(self._open_tags, tag, count)
        del self._open_fragments[index:]

    def _on_meta(self, attrs: dict[str, str]) -> None:
        name = (attrs.get("name") or attrs.get("property") or "").strip().lower()
        content = attrs.get("content", "")
        if name and content and name in META_WHITELIST:
            self._meta[name] = content

    def _on_img(self, attrs: dict[str, str]) -> None:
        self._add_resolved(self._images, attrs.get("src"))

    def _on_anchor(self, attrs: dict[str, str]) -> None:
        href = (attrs.get("href") or "").strip()
        if not href or href.startswith("#"):
            return
        if href.lower().startswith(SCRIPT_PROTOCOLS):
            return
        self._add_resolved(self._links, href)

    def _on_video(self, attrs: dict[str, str]) -> None:
        self._add_resolved(self._videos, attrs.get("src") or attrs.get("data-src"))

    def _on_base(self, attrs: dict[str, str]) -> None:
        resolved = resolve_reference(self.base_url, attrs.get("href"))
        if resolved:
            self.base_url = resolved

    def _add_resolved(self, target: CappedUrlSet, ref: str | None) -> None:
        if target.full:
            return
        resolved = resolve_reference(self.base_url, ref)
        if resolved:
            target.add(resolved)


def _release(counter: Counter, tag: str, count: int = 1) -> None:
    remaining = counter[tag] - count
    if remaining > 0:
        counter[tag] = remaining
    else:
        counter.pop(tag, None)
