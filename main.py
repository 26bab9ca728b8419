"""FluxGate - Edge HTTP proxy

Simple CLI for serving the proxy or running one extraction locally.
"""

import argparse
import asyncio
import json
import sys

from fluxgate.api.deps import get_pipeline
from fluxgate.config import settings
from fluxgate.models.schemas import ProxyEnvelope
from fluxgate.proxy_core.models.errors import ProxyError
from fluxgate.proxy_core.models.interfaces import OutputFormat
from fluxgate.proxy_core.validation import build_request, parse_format


async def run_extraction(url: str, fmt: str, selector: str | None, delay: str | None) -> int:
    """Run one extraction and print the JSON envelope."""
    output_format = parse_format(fmt, default=OutputFormat.JSON)
    if output_format is OutputFormat.RAW:
        print("[!] Raw passthrough is only served over HTTP; use --format json", file=sys.stderr)
        return 2

    try:
        request = build_request(
            url=url,
            output_format=output_format,
            class_name=selector,
            id_name=selector,
            delay=delay,
            stealth=settings.stealth_default,
            max_delay_ms=settings.max_delay_ms,
        )
        data = await get_pipeline().extract(request)
    except ProxyError as e:
        print(json.dumps({"success": False, "error": e.message}, indent=2))
        return 1

    print(json.dumps(ProxyEnvelope(success=True, data=data).to_payload(), indent=2))
    return 0


def main():
    parser = argparse.ArgumentParser(description="FluxGate edge proxy")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP service")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8787)
    serve.add_argument("--reload", action="store_true")

    fetch = sub.add_parser("fetch", help="Extract one URL and print the result")
    fetch.add_argument("url", help="Target URL")
    fetch.add_argument("--format", "-f", default="json", help="json, text, images, links, videos, class or id")
    fetch.add_argument("--selector", "-s", help="Class name or element id for class/id formats")
    fetch.add_argument("--delay", "-d", help="Artificial delay in seconds")

    args = parser.parse_args()

    if args.command == "serve":
        import uvicorn

        uvicorn.run("fluxgate.main:app", host=args.host, port=args.port, reload=args.reload)
        return

    sys.exit(asyncio.run(run_extraction(args.url, args.format, args.selector, args.delay)))


if __name__ == "__main__":
    main()
