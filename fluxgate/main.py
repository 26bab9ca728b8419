from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fluxgate.api.routes import proxy, stats
from fluxgate.config import settings
from fluxgate.proxy_core.fetch.service import CORS_HEADERS
from fluxgate.proxy_core.models.errors import ProxyError
from fluxgate.services import logger as log_service


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_service.log_event("startup", "FluxGate started", marker=settings.proxy_marker)
    yield


app = FastAPI(
    title="FluxGate",
    description="Edge HTTP proxy with streaming HTML extraction",
    version="2.1.0",
    lifespan=lifespan,
)

# CORS preflight
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    expose_headers=["X-Proxied-By", "X-Proxy-Mode"],
)


@app.middleware("http")
async def add_proxy_headers(request: Request, call_next):
    response = await call_next(request)
    if request.url.path.startswith("/api/"):
        for name, value in CORS_HEADERS.items():
            response.headers[name] = value
        response.headers["X-Proxied-By"] = settings.proxy_marker
    return response


@app.exception_handler(ProxyError)
async def proxy_error_handler(request: Request, exc: ProxyError):
    log_service.log_request(
        request.query_params.get("url", ""),
        request.url.path.rsplit("/", 1)[-1],
        status=str(exc.status_code),
        error=exc.message,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.message},
    )


# Routes
app.include_router(stats.router)
app.include_router(proxy.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "fluxgate"}
