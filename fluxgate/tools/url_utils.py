from __future__ import annotations

from urllib.parse import unquote, urljoin, urlsplit, urlunsplit

from fluxgate.proxy_core.models.errors import InvalidTargetError

ALLOWED_SCHEMES = ("http", "https")


def normalize_target_url(raw: str) -> str:
    """Decode once, default to https, and return an absolute http(s) URL."""
    decoded = unquote(raw or "").strip()
    if not decoded:
        raise InvalidTargetError()
    if "://" not in decoded:
        decoded = f"https://{decoded}"

    try:
        parsed = urlsplit(decoded)
        host = parsed.hostname
        port = parsed.port
    except ValueError as exc:
        raise InvalidTargetError() from exc

    scheme = parsed.scheme.lower()
    if scheme not in ALLOWED_SCHEMES or not host:
        raise InvalidTargetError()

    if ":" in host:
        netloc = f"[{host}]"
    else:
        netloc = host.lower()
    if port is not None:
        netloc = f"{netloc}:{port}"
    userinfo, at, _ = parsed.netloc.rpartition("@")
    if at:
        netloc = f"{userinfo}@{netloc}"

    return urlunsplit((scheme, netloc, parsed.path or "/", parsed.query, parsed.fragment))


def resolve_reference(base: str, ref: str | None) -> str | None:
    """Resolve a src/href against base; malformed references give None."""
    if ref is None:
        return None
    ref = ref.strip()
    if not ref:
        return None
    try:
        resolved = urljoin(base, ref)
        parsed = urlsplit(resolved)
        parsed.port  # raises on a malformed port
    except ValueError:
        return None
    if not parsed.scheme:
        return None
    return resolved


def origin_of(url: str) -> str:
    parsed = urlsplit(url)
    host = parsed.netloc.rpartition("@")[2]
    return f"{parsed.scheme}://{host}/"

