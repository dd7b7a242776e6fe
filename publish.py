import json
import logging
import os
import re
import shlex
import subprocess
import sys
from typing import IO, List, Optional

from errors import InputError, PublishError
from github import AccessToken

log = logging.getLogger("ghapp_token.publish")

EMIT_MODES = ("export", "raw", "json", "github-env")
_VAR_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def check_var_name(var: str) -> str:
    if not _VAR_RE.match(var or ""):
        raise InputError(f"not a valid environment variable name: {var!r}")
    return var


def export_line(token: str, var: str = "GITHUB_TOKEN") -> str:
    """Shell line suitable for `eval "$(ghapp-token ...)"`."""
    return f"export {check_var_name(var)}={shlex.quote(token)}"


def _write(stream: IO[str], text: str) -> None:
    try:
        stream.write(text)
        stream.flush()
    except (OSError, ValueError) as e:
        raise PublishError(f"could not write token: {e}") from None


def publish(
    token: AccessToken,
    var: str = "GITHUB_TOKEN",
    emit: str = "export",
    stream: Optional[IO[str]] = None,
    github_env: Optional[str] = None,
    confirm: Optional[IO[str]] = None,
) -> None:
    """
    Hand the token to whoever invoked us. Nothing is written until the
    token exists, so a failed run never leaves a partial value behind.
    """
    check_var_name(var)
    out = stream if stream is not None else sys.stdout

    if emit == "export":
        _write(out, export_line(token.token, var) + "\n")
    elif emit == "raw":
        _write(out, token.token + "\n")
    elif emit == "json":
        _write(out, json.dumps({"var": var, "token": token.token, "expires_at": token.expires_at,
                                "installation_id": token.installation_id}) + "\n")
    elif emit == "github-env":
        path = github_env or os.environ.get("GITHUB_ENV")
        if not path:
            raise PublishError("GITHUB_ENV is not set; --emit github-env only works inside GitHub Actions")
        # mask first so the value never shows up unredacted in the job log
        _write(out, f"::add-mask::{token.token}\n")
        try:
            with open(path, "a", encoding="utf-8") as f:
                f.write(f"{var}={token.token}\n")
        except OSError as e:
            raise PublishError(f"could not append to {path}: {e}") from None
    else:
        raise InputError(f"unknown emit mode {emit!r} (choose from {', '.join(EMIT_MODES)})")

    _write(confirm if confirm is not None else sys.stderr, f"Exported {var}\n")


def run_with_token(argv: List[str], token: AccessToken, var: str = "GITHUB_TOKEN") -> int:
    """Run a consumer command with the token in its environment; returns its exit code."""
    if not argv:
        raise InputError("no command given to run")
    env = os.environ.copy()
    env[check_var_name(var)] = token.token
    log.info("running %s with %s set", argv[0], var)
    try:
        return subprocess.run(argv, env=env, check=False).returncode
    except OSError as e:
        raise PublishError(f"could not run {argv[0]}: {e}") from None
