from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str
    host: str
    port: int
    debug: bool
    public_url: str  # URL the API is reachable under, e.g. https://api.cs2kz.org
    cors_origins: list[str] = []
    cookie_domain: str | None = None
    cookie_path: str = "/"
    cookie_secure: bool = True
    session_ttl: int = 7 * 24 * 60 * 60  # seconds
    session_sliding_expiry: bool = True  # extend sessions on every authenticated request
    session_sweep_interval: int = 60 * 60  # seconds between expired-session purges
    websocket_handshake_timeout: float = 30.0
    websocket_heartbeat_interval: float = 30.0
    websocket_close_grace_period: float = 2.0
    # Build metadata injected during Docker build via environment variables
    git_commit_hash: str = "unknown"
    git_commit_date: str = "unknown"
    build_time: str = "unknown"

    model_config = {
        "env_file": [".env"],
        "env_prefix": "CS2KZ_",
        "extra": "ignore",
    }
