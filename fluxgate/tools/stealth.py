from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass

from fluxgate.proxy_core.models.interfaces import IdentityOverride
from fluxgate.tools.url_utils import origin_of

USER_AGENT_POOL = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/123.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14.4; rv:125.0) Gecko/20100101 Firefox/125.0",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_4 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36 Edg/124.0.2478.51",
)

ACCEPT_HEADER = "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8"


@dataclass(frozen=True, slots=True)
class Identity:
    user_agent: str
    forwarded_for: str | None = None
    referer: str | None = None

    def as_headers(self) -> dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": ACCEPT_HEADER,
            "Cache-Control": "no-cache",
        }
        if self.forwarded_for:
            headers["X-Forwarded-For"] = self.forwarded_for
            headers["X-Real-IP"] = self.forwarded_for
        if self.referer:
            headers["Referer"] = self.referer
        return headers


def random_ipv4(rng: random.Random | None = None) -> str:
    rng = rng or random
    return ".".join(str(rng.randint(0, 255)) for _ in range(4))


def choose_identity(
    target_url: str,
    *,
    override: IdentityOverride | None = None,
    stealth: bool = True,
    service_user_agent: str = "",
    rng: random.Random | None = None,
) -> Identity:
    """Pick outbound header values for one upstream request.

    With stealth on, the user agent comes from a small browser pool, the
    forwarded address is synthesized, and the referer defaults to the target's
    own origin. Caller overrides always win.
    """
    rng = rng or random
    override = override or IdentityOverride()

    if not stealth:
        return Identity(
            user_agent=override.user_agent or service_user_agent,
            referer=override.referer,
        )

    return Identity(
        user_agent=override.user_agent or rng.choice(USER_AGENT_POOL),
        forwarded_for=random_ipv4(rng),
        referer=override.referer or origin_of(target_url),
    )


async def delay_gate(
    delay_ms: int,
    *,
    jitter_ms: int = 0,
    rng: random.Random | None = None,
) -> int:
    """Suspend the current request for delay_ms plus jitter; returns ms slept."""
    if delay_ms <= 0:
        return 0
    rng = rng or random
    total_ms = delay_ms + (rng.randint(0, jitter_ms) if jitter_ms > 0 else 0)
    await asyncio.sleep(total_ms / 1000)
    return total_ms
