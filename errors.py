from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class TokenIssueError(Exception):
    """Base for every failure that aborts token issuance."""

    step: Optional[str] = None

    def describe(self) -> str:
        return f"[{self.step}] {self}" if self.step else str(self)


class InputError(TokenIssueError):
    pass


class KeyParseError(TokenIssueError):
    pass


class SigningError(TokenIssueError):
    pass


class ParseError(TokenIssueError):
    pass


class PublishError(TokenIssueError):
    pass


@dataclass(eq=False)
class AuthorityError(TokenIssueError):
    status: int
    body: str
    url: str = ""

    def __str__(self) -> str:
        body = (self.body or "").strip().replace("\n", " ")
        return f"{self.url or 'GitHub API'} returned HTTP {self.status}: {body[:300]}"


@dataclass(eq=False)
class AuthorityTimeout(TokenIssueError):
    url: str
    timeout_s: float

    def __str__(self) -> str:
        return f"{self.url} did not respond within {self.timeout_s:g}s"


@dataclass(eq=False)
class AuthorityUnreachable(TokenIssueError):
    url: str
    reason: str

    def __str__(self) -> str:
        return f"could not reach {self.url}: {self.reason}"


@dataclass(eq=False)
class NoInstallationFound(TokenIssueError):
    account: Optional[str] = None

    def __str__(self) -> str:
        if self.account:
            return f"no installation of this App found for account {self.account!r}"
        return "this App has no installations"
