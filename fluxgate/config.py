from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Upstream fetch
    upstream_timeout_seconds: float = 15.0
    pipeline_timeout_seconds: float = 30.0  # delay + fetch + extraction share this deadline

    # Stealth
    stealth_default: bool = True
    max_delay_ms: int = 10000
    delay_jitter_ms: int = 300
    service_user_agent: str = (
        "FluxGate/2.1 (Edge Proxy; High-Performance Extraction Engine)"
    )

    # Extraction caps
    max_images: int = 50
    max_links: int = 100

    # Response headers
    proxy_marker: str = "FluxGate/2.1"
    passthrough_cache_control: str = "public, max-age=3600"

    # App
    cors_origins: str = "*"
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"
    log_to_file: bool = True

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()
