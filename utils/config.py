"""Configuration management for the governorate console.

Provides:
- parse_regions(): parse the APP_REGIONS "code:Name" list
- AppConfig: application settings loaded from environment variables
"""

import os as _os

from utils.patterns import REGION_CODE


DEFAULT_REGIONS = (
    "capital:Capital Governorate,"
    "north:Northern Governorate,"
    "south:Southern Governorate,"
    "east:Eastern Governorate,"
    "west:Western Governorate"
)


def parse_regions(raw: str) -> dict[str, str]:
    """Parse ``"code:Name,code:Name"`` into an ordered ``{code: name}`` dict.

    A bare ``code`` uses the code as its display name.

    Raises:
        ValueError: on an invalid code, a duplicate, or an empty list.
    """
    regions: dict[str, str] = {}
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        code, _, name = item.partition(":")
        code = code.strip()
        if not REGION_CODE.match(code):
            raise ValueError(f"Invalid region code {code!r} in APP_REGIONS")
        if code in regions:
            raise ValueError(f"Duplicate region code {code!r} in APP_REGIONS")
        regions[code] = name.strip() or code
    if not regions:
        raise ValueError("APP_REGIONS must name at least one region")
    return regions


def _env_flag(name: str, default: str = "0") -> bool:
    return _os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class AppConfig:
    """Application-level configuration loaded from environment variables.

    All env vars have sensible defaults so the application starts without
    any configuration (Firebase then falls back to Application Default
    Credentials).

    Environment variables:
        APP_PORT: Server port (default: 8000)
        APP_HOST: Server bind address (default: 127.0.0.1)
        APP_LOG_FORMAT: Logging format, "text" or "json" (default: text)
        APP_CORS_ORIGINS: Comma-separated allowed origins (default: *)
        APP_REGIONS: Comma-separated "code:Name" governorates
        APP_DEFAULT_REGION: Region shown to unscoped users (default: first region)
        APP_ALLOW_ANONYMOUS: Accept anonymous Firebase sign-ins (default: 0)
        APP_SESSION_COOKIE: Name of the session cookie (default: session)
        APP_SESSION_DAYS: Session cookie lifetime in days, 1-14 (default: 5)
        APP_PAGE_SIZE: Rows per list page (default: 25)
        APP_LIST_CACHE_SECONDS: TTL of cached listings (default: 60)
        APP_POLL_SECONDS: HTMX refresh interval of list views, 0 = off (default: 20)
        FIREBASE_CREDENTIALS: Path to a service-account JSON file
        FIREBASE_PROJECT_ID: Firebase project id
        FIREBASE_WEB_API_KEY: Web API key for the login page SDK
        FIREBASE_AUTH_DOMAIN: Auth domain for the login page SDK
    """

    def __init__(self) -> None:
        self.api_port = int(_os.getenv("APP_PORT", "8000"))
        self.api_host = _os.getenv("APP_HOST", "127.0.0.1")
        self.log_format = _os.getenv("APP_LOG_FORMAT", "text")
        raw_origins = _os.getenv("APP_CORS_ORIGINS", "*")
        self.cors_origins: list[str] = (
            ["*"] if raw_origins == "*"
            else [o.strip() for o in raw_origins.split(",") if o.strip()]
        )
        self.regions: dict[str, str] = parse_regions(
            _os.getenv("APP_REGIONS", DEFAULT_REGIONS)
        )
        self.default_region = _os.getenv("APP_DEFAULT_REGION", "") or next(iter(self.regions))
        if self.default_region not in self.regions:
            raise ValueError(
                f"APP_DEFAULT_REGION {self.default_region!r} is not in APP_REGIONS"
            )
        self.allow_anonymous = _env_flag("APP_ALLOW_ANONYMOUS")
        self.session_cookie = _os.getenv("APP_SESSION_COOKIE", "session")
        # Firebase accepts session cookies between 5 minutes and 14 days.
        self.session_days = min(14, max(1, int(_os.getenv("APP_SESSION_DAYS", "5"))))
        self.page_size = max(1, int(_os.getenv("APP_PAGE_SIZE", "25")))
        self.list_cache_seconds = float(_os.getenv("APP_LIST_CACHE_SECONDS", "60"))
        self.poll_seconds = max(0, int(_os.getenv("APP_POLL_SECONDS", "20")))
        self.firebase_credentials = _os.getenv("FIREBASE_CREDENTIALS", "")
        self.firebase_project_id = _os.getenv("FIREBASE_PROJECT_ID", "")
        self.firebase_web_api_key = _os.getenv("FIREBASE_WEB_API_KEY", "")
        self.firebase_auth_domain = _os.getenv("FIREBASE_AUTH_DOMAIN", "")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create an AppConfig instance populated from environment variables."""
        return cls()

    def region_name(self, code: str) -> str:
        """Display name of a region code (the code itself if unknown)."""
        return self.regions.get(code, code)


# ── Process-wide configuration ─────────────────────────────────────────────────

_app_config: AppConfig | None = None


def set_config(cfg: AppConfig | None) -> None:
    """Replace the process-wide AppConfig (create_app(config=...) and tests)."""
    global _app_config
    _app_config = cfg


def get_config() -> AppConfig:
    """Return the process-wide AppConfig, reading the environment on first use.

    Also usable as a FastAPI dependency.
    """
    global _app_config
    if _app_config is None:
        _app_config = AppConfig.from_env()
    return _app_config
