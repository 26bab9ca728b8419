from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal


class OutputFormat(str, Enum):
    RAW = "raw"
    JSON = "json"
    TEXT = "text"
    IMAGES = "images"
    LINKS = "links"
    VIDEOS = "videos"
    CLASS_SELECTOR = "class"
    ID_SELECTOR = "id"

    @property
    def needs_selector(self) -> bool:
        return self in (OutputFormat.CLASS_SELECTOR, OutputFormat.ID_SELECTOR)


# "html" is the documented name for the raw stream.
FORMAT_ALIASES = {"html": OutputFormat.RAW}

SelectorKind = Literal["class", "id"]


@dataclass(frozen=True, slots=True)
class Selector:
    kind: SelectorKind
    value: str

    def matches(self, attrs: dict[str, str]) -> bool:
        if self.kind == "id":
            return attrs.get("id", "") == self.value
        return self.value in attrs.get("class", "").split()


@dataclass(frozen=True, slots=True)
class IdentityOverride:
    user_agent: str | None = None
    referer: str | None = None


@dataclass(slots=True)
class ExtractionRequest:
    target_url: str
    output_format: OutputFormat
    selector_value: str | None = None
    delay_ms: int = 0
    identity_override: IdentityOverride = field(default_factory=IdentityOverride)
    stealth: bool = True

    @property
    def selector(self) -> Selector | None:
        if self.output_format is OutputFormat.CLASS_SELECTOR and self.selector_value:
            return Selector(kind="class", value=self.selector_value)
        if self.output_format is OutputFormat.ID_SELECTOR and self.selector_value:
            return Selector(kind="id", value=self.selector_value)
        return None


@dataclass(slots=True)
class ExtractedElement:
    tag: str
    attributes: dict[str, str]
    text: str = ""


@dataclass(slots=True)
class ExtractedDocument:
    title: str = ""
    meta: dict[str, str] = field(default_factory=dict)
    images: list[str] = field(default_factory=list)
    links: list[str] = field(default_factory=list)
    videos: list[str] = field(default_factory=list)
    fragments: list[ExtractedElement] = field(default_factory=list)
