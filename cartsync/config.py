"""Engine configuration read from environment variables."""

import os
from dataclasses import dataclass
from functools import cache

DEFAULT_API_URL = "http://localhost:8082"
DEFAULT_API_VERSION = "v1"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def build_api_url(base_url: str, endpoint: str) -> str:
    """Join a base URL and an endpoint without doubling the slash."""
    clean_endpoint = endpoint[1:] if endpoint.startswith("/") else endpoint
    return f"{base_url.rstrip('/')}/{clean_endpoint}"


@dataclass(frozen=True)
class Settings:
    """Connection and policy settings for one engine instance."""

    api_url: str = DEFAULT_API_URL
    guest_api_url: str = DEFAULT_API_URL
    api_version: str = DEFAULT_API_VERSION
    http_timeout: float = 10.0
    wishlist_check_enabled: bool = False
    redis_url: str = ""
    redis_token: str = ""

    @property
    def api_base_path(self) -> str:
        """Authenticated API root, e.g. http://localhost:8082/api/v1"""
        return build_api_url(self.api_url, f"api/{self.api_version}")

    @property
    def guest_api_base_path(self) -> str:
        return build_api_url(self.guest_api_url, f"api/{self.api_version}")

    @property
    def redis_configured(self) -> bool:
        return bool(self.redis_url and self.redis_token)

    @classmethod
    def from_env(cls) -> "Settings":
        api_url = os.environ.get("CARTSYNC_API_URL", DEFAULT_API_URL)
        return cls(
            api_url=api_url,
            # Guest carts live on their own host in some deployments
            guest_api_url=os.environ.get("CARTSYNC_GUEST_API_URL", api_url),
            api_version=os.environ.get("CARTSYNC_API_VERSION", DEFAULT_API_VERSION),
            http_timeout=_env_float("CARTSYNC_HTTP_TIMEOUT", 10.0),
            wishlist_check_enabled=_env_bool("CARTSYNC_WISHLIST_CHECK_ENABLED"),
            redis_url=os.environ.get("UPSTASH_REDIS_REST_URL", ""),
            redis_token=os.environ.get("UPSTASH_REDIS_REST_TOKEN", ""),
        )


@cache
def get_settings() -> Settings:
    """Settings singleton, read from the environment on first use."""
    return Settings.from_env()
