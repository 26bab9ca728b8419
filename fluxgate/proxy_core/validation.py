from __future__ import annotations

from fluxgate.proxy_core.models.errors import InvalidRequestError
from fluxgate.proxy_core.models.interfaces import (
    FORMAT_ALIASES,
    ExtractionRequest,
    IdentityOverride,
    OutputFormat,
)
from fluxgate.tools.url_utils import normalize_target_url


def parse_format(value: str | None, default: OutputFormat = OutputFormat.RAW) -> OutputFormat:
    if value is None or not value.strip():
        return default
    key = value.strip().lower()
    if key in FORMAT_ALIASES:
        return FORMAT_ALIASES[key]
    try:
        return OutputFormat(key)
    except ValueError:
        raise InvalidRequestError(f"Unsupported format: {value}") from None


def parse_delay_ms(
    delay: str | None,
    delay_ms: str | None,
    *,
    max_delay_ms: int = 10000,
) -> int:
    """Read the artificial delay in ms; ``delay`` is seconds, ``delay_ms`` wins."""
    raw, scale = (delay_ms, 1) if delay_ms not in (None, "") else (delay, 1000)
    if raw in (None, ""):
        return 0
    try:
        value = float(raw) * scale
    except ValueError:
        raise InvalidRequestError(f"Invalid delay: {raw}") from None
    if value != value:  # NaN
        raise InvalidRequestError(f"Invalid delay: {raw}")
    return int(min(max(value, 0), max_delay_ms))


def build_request(
    *,
    url: str | None,
    output_format: OutputFormat,
    class_name: str | None = None,
    id_name: str | None = None,
    delay: str | None = None,
    delay_ms: str | None = None,
    user_agent: str | None = None,
    referer: str | None = None,
    stealth: bool = True,
    max_delay_ms: int = 10000,
) -> ExtractionRequest:
    """Validate raw query values into an ExtractionRequest."""
    if not url or not url.strip():
        raise InvalidRequestError("URL query parameter is required")
    target = normalize_target_url(url)

    selector_value = None
    if output_format is OutputFormat.CLASS_SELECTOR:
        selector_value = (class_name or "").strip()
    elif output_format is OutputFormat.ID_SELECTOR:
        selector_value = (id_name or "").strip()
    if output_format.needs_selector and not selector_value:
        raise InvalidRequestError(f"Selector required for format: {output_format.value}")

    return ExtractionRequest(
        target_url=target,
        output_format=output_format,
        selector_value=selector_value or None,
        delay_ms=parse_delay_ms(delay, delay_ms, max_delay_ms=max_delay_ms),
        identity_override=IdentityOverride(
            user_agent=(user_agent or "").strip() or None,
            referer=(referer or "").strip() or None,
        ),
        stealth=stealth,
    )
