"""Configuration management for OpenHedge."""

import os
from dataclasses import dataclass, field
from pathlib import Path


def _get_supabase_url() -> str:
    """Get the remote data store URL. Required for every view."""
    url = os.environ.get("SUPABASE_URL", "")
    if not url:
        raise ValueError(
            "SUPABASE_URL environment variable is required. "
            "Set it with: export SUPABASE_URL=https://<project>.supabase.co"
        )
    return url.rstrip("/")


def _get_supabase_key() -> str:
    """Get the anonymous (public) API key for the remote data store."""
    key = os.environ.get("SUPABASE_ANON_KEY", "")
    if not key:
        raise ValueError(
            "SUPABASE_ANON_KEY environment variable is required. "
            "Set it with: export SUPABASE_ANON_KEY=<anon key>"
        )
    return key


def _get_base_dir() -> Path:
    home = os.environ.get("OPENHEDGE_HOME")
    if home:
        return Path(home).expanduser()
    return Path.home() / ".openhedge"


@dataclass
class Config:
    """Application configuration."""

    # Paths
    base_dir: Path = field(default_factory=_get_base_dir)
    session_file: Path = field(init=False)
    exports_dir: Path = field(init=False)

    # Remote data store
    supabase_url: str = field(default_factory=_get_supabase_url)
    supabase_key: str = field(default_factory=_get_supabase_key)
    http_timeout: float = 30.0

    # Market data (empty key behaves like a rate-limited API)
    alpha_vantage_key: str = field(
        default_factory=lambda: os.environ.get("ALPHA_VANTAGE_API_KEY", "")
    )

    # Auth
    oauth_provider: str = "google"
    oauth_callback_port: int = 54321

    # Tables
    fund_page_size: int = 50
    trending_batch_size: int = 20
    rankings_limit: int = 10_000

    # Debounce delays in seconds, per search box
    nav_search_delay: float = 0.3
    fund_search_delay: float = 0.5
    ticker_suggest_delay: float = 0.6
    security_search_delay: float = 0.3

    def __post_init__(self) -> None:
        self.base_dir = Path(self.base_dir)
        self.supabase_url = self.supabase_url.rstrip("/")
        self.session_file = self.base_dir / "session.yaml"
        self.exports_dir = self.base_dir / "exports"

        self.base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def oauth_redirect_url(self) -> str:
        return f"http://127.0.0.1:{self.oauth_callback_port}/callback"


def get_config() -> Config:
    """Get the default configuration."""
    return Config()
