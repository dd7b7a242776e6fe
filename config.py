import os
from dataclasses import dataclass
from typing import Mapping, Optional

import certifi

DEFAULT_API = "https://api.github.com"


def bool_env(name: str, default: bool = False, env: Optional[Mapping[str, str]] = None) -> bool:
    v = (os.environ if env is None else env).get(name)
    if v is None:
        return default
    return v.lower() in {"1","true","yes","on"}


def int_env(name: str, default: Optional[int] = None, env: Optional[Mapping[str, str]] = None) -> Optional[int]:
    v = ((os.environ if env is None else env).get(name) or "").strip()
    if not v:
        return default
    try:
        return int(v)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {v!r}")


def float_env(name: str, default: Optional[float] = None, env: Optional[Mapping[str, str]] = None) -> Optional[float]:
    v = ((os.environ if env is None else env).get(name) or "").strip()
    if not v:
        return default
    try:
        return float(v)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {v!r}")


@dataclass
class Settings:
    api_base: str = DEFAULT_API
    http_timeout_s: float = 10
    api_version: str = "2022-11-28"
    user_agent: str = "ghapp-token"
    token_var: str = "GITHUB_TOKEN"
    account: Optional[str] = None
    installation_id: Optional[int] = None
    ca_bundle: Optional[str] = None
    debug: bool = False

    def verify(self) -> str:
        return self.ca_bundle or certifi.where()


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables (GITHUB_API, HTTP_TIMEOUT_S, ...)."""
    e = os.environ if env is None else env
    timeout_s = float_env("HTTP_TIMEOUT_S", 10, env=e)
    # urllib3 rejects 0, and nan/inf would disable the bound
    if not 0 < timeout_s < float("inf"):
        raise ValueError(f"HTTP_TIMEOUT_S must be a positive number of seconds, got {e.get('HTTP_TIMEOUT_S')!r}")
    return Settings(
        # GitHub Enterprise: https://HOST/api/v3
        api_base=(e.get("GITHUB_API") or DEFAULT_API).rstrip("/"),
        http_timeout_s=timeout_s,
        api_version=e.get("GITHUB_API_VERSION") or "2022-11-28",
        user_agent=e.get("GHAPP_TOKEN_USER_AGENT") or "ghapp-token",
        token_var=e.get("GITHUB_TOKEN_VAR") or "GITHUB_TOKEN",
        account=(e.get("GITHUB_APP_ACCOUNT") or "").strip() or None,
        installation_id=int_env("INSTALLATION_ID", env=e),
        ca_bundle=e.get("REQUESTS_CA_BUNDLE") or e.get("SSL_CERT_FILE") or None,
        debug=bool_env("GHAPP_TOKEN_DEBUG", env=e),
    )
