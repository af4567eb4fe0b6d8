"""Server configuration — reads settings from environment variables.

All settings have defaults suitable for local development.
"""

import os
from dataclasses import dataclass, field

# Upper bound on dossier ids accepted by one verdict/progress request.
# Read at import time so request models can reference it.
MAX_DOSSIERS_PER_REQUEST = int(os.getenv("MAX_DOSSIERS_PER_REQUEST", "200"))


@dataclass(frozen=True)
class ServerSettings:
    """Immutable server configuration read from environment at startup."""

    # Network
    host: str = "0.0.0.0"
    port: int = 8080

    # CORS: comma-separated origins, or "*" for wide-open dev mode
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    log_level: str = "INFO"

    # Portal backend API (results, documents, circuits)
    backend_base_url: str = "http://localhost:8000/api"
    backend_token: str | None = None
    backend_timeout: float = 10.0

    # When set, circuits are read from YAML files in this directory instead
    # of the backend API
    circuit_dir: str | None = None

    # When set, requests carrying X-User-ID must also carry a matching
    # X-Proxy-Secret header
    trusted_proxy_secret: str | None = None


def load_settings() -> ServerSettings:
    """Build settings from ``SERVER_*`` environment variables."""
    raw_origins = os.getenv("SERVER_CORS_ORIGINS", "*")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

    return ServerSettings(
        host=os.getenv("SERVER_HOST", "0.0.0.0"),
        port=int(os.getenv("SERVER_PORT", "8080")),
        cors_origins=origins,
        log_level=os.getenv("SERVER_LOG_LEVEL", "INFO").upper(),
        backend_base_url=os.getenv("SERVER_BACKEND_URL", "http://localhost:8000/api"),
        backend_token=os.getenv("SERVER_BACKEND_TOKEN") or None,
        backend_timeout=float(os.getenv("SERVER_BACKEND_TIMEOUT", "10")),
        circuit_dir=os.getenv("SERVER_CIRCUIT_DIR") or None,
        trusted_proxy_secret=os.getenv("TRUSTED_PROXY_SECRET") or None,
    )
