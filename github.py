import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

import requests

from config import DEFAULT_API
from errors import (
    AuthorityError,
    AuthorityTimeout,
    AuthorityUnreachable,
    NoInstallationFound,
    ParseError,
)

log = logging.getLogger("ghapp_token.github")


def _mask(s: str, keep: int = 6) -> str:
    if not s:
        return ""
    if len(s) <= keep * 2:
        return "…"
    return s[:keep] + "…" + s[-keep:]


@dataclass
class Installation:
    id: int
    account: Optional[str] = None
    target_type: Optional[str] = None


@dataclass
class AccessToken:
    token: str
    installation_id: int
    expires_at: Optional[str] = None

    def __repr__(self) -> str:
        return (f"AccessToken(token={_mask(self.token, 4)!r}, installation_id={self.installation_id}, "
                f"expires_at={self.expires_at!r})")


def _parse_installation(obj: Any) -> Installation:
    if not isinstance(obj, dict):
        raise ParseError(f"installation entry is not an object: {type(obj).__name__}")
    iid = obj.get("id")
    # bool is an int subclass; reject it explicitly
    if not isinstance(iid, int) or isinstance(iid, bool):
        raise ParseError(f"installation entry has no integer id: {iid!r}")
    account = obj.get("account")
    login = account.get("login") if isinstance(account, dict) else None
    return Installation(id=iid, account=login if isinstance(login, str) else None,
                        target_type=obj.get("target_type"))


class GitHubClient:
    """App-level (JWT-authenticated) calls against the GitHub REST API."""

    def __init__(
        self,
        app_jwt: str,
        base_url: str = DEFAULT_API,
        timeout_s: float = 10,
        api_version: str = "2022-11-28",
        user_agent: str = "ghapp-token",
        verify: Any = True,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.verify = verify
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {app_jwt}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": api_version,
            "User-Agent": user_agent,
        })

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        if url.startswith("/"):
            url = f"{self.base_url}{url}"
        try:
            r = self.session.request(method, url, timeout=self.timeout_s, verify=self.verify, **kwargs)
        except requests.Timeout:
            log.error("%s %s -> timed out after %ss", method, url, self.timeout_s)
            raise AuthorityTimeout(url, self.timeout_s) from None
        except requests.RequestException as e:
            log.error("%s %s -> %s", method, url, e)
            raise AuthorityUnreachable(url, str(e)) from None
        if not 200 <= r.status_code < 300:
            log.error("%s %s -> %s %s: %s", method, url, r.status_code, r.reason, (r.text or "")[:800])
            raise AuthorityError(r.status_code, r.text or "", url)
        log.debug("%s %s -> %s", method, url, r.status_code)
        return r

    @staticmethod
    def _json(r: requests.Response) -> Any:
        try:
            return r.json()
        except ValueError:
            raise ParseError(f"response from {r.url} is not JSON: {(r.text or '')[:200]!r}") from None

    def iter_installations(self, per_page: int = 100, max_pages: int = 50) -> Iterator[Installation]:
        """Yield the App's installations, fetching further pages only when needed."""
        url: Optional[str] = "/app/installations"
        params: Optional[Dict[str, Any]] = {"per_page": per_page}
        seen = set()
        page = 1
        while url:
            if page > max_pages or url in seen:
                log.warning("stopped listing installations after %d pages at %s", page - 1, url)
                return
            seen.add(url)
            page += 1
            r = self._request("GET", url, params=params)
            items = self._json(r)
            if not isinstance(items, list):
                raise ParseError(f"expected a list of installations, got {type(items).__name__}")
            for obj in items:
                yield _parse_installation(obj)
            # next link already carries the query string
            url = (r.links or {}).get("next", {}).get("url") if items else None
            params = None

    def list_installations(self) -> List[Installation]:
        return list(self.iter_installations())

    def resolve_installation(self, account: Optional[str] = None) -> Installation:
        """
        First installation of the App, or the first one whose account login
        matches `account` (case-insensitive).
        """
        want = account.lower() if account else None
        for inst in self.iter_installations():
            if want is None or (inst.account or "").lower() == want:
                log.info("using installation id=%s account=%s", inst.id, inst.account)
                return inst
        raise NoInstallationFound(account)

    def create_access_token(self, installation_id: int, repositories: Optional[List[str]] = None) -> AccessToken:
        kwargs: Dict[str, Any] = {}
        if repositories:
            kwargs["json"] = {"repositories": list(repositories)}
        r = self._request("POST", f"/app/installations/{installation_id}/access_tokens", **kwargs)
        body = self._json(r)
        if not isinstance(body, dict):
            raise ParseError(f"expected an access token object, got {type(body).__name__}")
        token = body.get("token")
        if not isinstance(token, str) or not token:
            raise ParseError("access token response has no 'token' field")
        expires_at = body.get("expires_at")
        at = AccessToken(token=token, installation_id=installation_id,
                         expires_at=expires_at if isinstance(expires_at, str) else None)
        log.info("minted installation token %s expires_at=%s", _mask(token, 4), at.expires_at)
        return at
