"""
ghapp-token: mint a GitHub App installation access token.

    eval "$(ghapp-token 12345 app.private-key.pem)"
    ghapp-token 12345 app.private-key.pem -- github-stats --owner octo

Flow (each step runs once, in order; any failure stops the run):
  1) Compute the JWT validity window (backdated 60s, valid 10 min).
  2) Build header/payload and sign them with the App's RSA key (RS256).
  3) List the App's installations with the JWT and pick one.
  4) Exchange the JWT for an installation access token.
  5) Publish the token (shell export line, raw, JSON, $GITHUB_ENV, or a child process).

Settings come from the environment (a local .env is loaded too); see config.py.
"""
import argparse
import base64
import binascii
import logging
import os
import sys
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Union

import requests
from dotenv import load_dotenv

from assertion import build_signing_input, sign, signing_window
from config import Settings, load_settings
from errors import InputError, TokenIssueError
from github import AccessToken, GitHubClient, _mask
from publish import EMIT_MODES, check_var_name, publish, run_with_token

log = logging.getLogger("ghapp_token")

# pipeline stages, recorded on the error that stops a run
BUILD_ASSERTION = "build-assertion"
SIGN_ASSERTION = "sign-assertion"
RESOLVE_INSTALLATION = "resolve-installation"
EXCHANGE_TOKEN = "exchange-token"
PUBLISH = "publish"


def _read_private_key(key_path: Optional[str], env: Mapping[str, str], stdin=None) -> bytes:
    """
    Accept any of: path to a PEM file ("-" for stdin), or from the environment
    GITHUB_APP_PRIVATE_KEY (inline PEM), GITHUB_APP_PRIVATE_KEY_B64, GITHUB_APP_PRIVATE_KEY_PATH.
    """
    if key_path == "-":
        data = (stdin or sys.stdin).read()
        return data.encode("utf-8") if isinstance(data, str) else data

    key_path = key_path or (env.get("GITHUB_APP_PRIVATE_KEY_PATH") or "").strip()
    if key_path:
        try:
            return Path(key_path).expanduser().read_bytes()
        except OSError as e:
            raise InputError(f"cannot read private key {key_path}: {e.strerror or e}") from None

    inline = (env.get("GITHUB_APP_PRIVATE_KEY") or "").strip()
    if inline:
        return inline.replace("\\n", "\n").encode("utf-8")

    b64 = (env.get("GITHUB_APP_PRIVATE_KEY_B64") or "").strip()
    if b64:
        try:
            return base64.b64decode(b64, validate=True)
        except (binascii.Error, ValueError):
            raise InputError("GITHUB_APP_PRIVATE_KEY_B64 is not valid base64") from None

    raise InputError("Provide a key path or GITHUB_APP_PRIVATE_KEY[_PATH|_B64]")


def issue_installation_token(
    app_id: Union[int, str],
    private_key: Union[bytes, str],
    settings: Optional[Settings] = None,
    account: Optional[str] = None,
    installation_id: Optional[int] = None,
    repositories: Optional[List[str]] = None,
    now: Optional[int] = None,
    session: Optional[requests.Session] = None,
) -> AccessToken:
    """
    Run the issuance pipeline and return the token. Nothing is published here;
    the caller decides where the token goes.
    """
    settings = settings or Settings()
    step = BUILD_ASSERTION
    try:
        iat, exp = signing_window(now)
        si = build_signing_input(app_id, iat, exp)

        step = SIGN_ASSERTION
        app_jwt = f"{si.signing_input}.{sign(private_key, si.signing_input)}"
        log.debug("signed app JWT %s iat=%d exp=%d", _mask(app_jwt), iat, exp)

        gh = GitHubClient(
            app_jwt,
            base_url=settings.api_base,
            timeout_s=settings.http_timeout_s,
            api_version=settings.api_version,
            user_agent=settings.user_agent,
            verify=settings.verify(),
            session=session,
        )

        step = RESOLVE_INSTALLATION
        if installation_id is None:
            installation_id = gh.resolve_installation(account).id
        else:
            log.info("using configured installation id=%s", installation_id)

        step = EXCHANGE_TOKEN
        return gh.create_access_token(installation_id, repositories=repositories)
    except TokenIssueError as e:
        e.step = e.step or step
        raise


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ghapp-token",
        description="Mint a GitHub App installation access token and publish it.",
        epilog="Anything after '--' is run as a command with the token in its environment.",
    )
    p.add_argument("app_id", nargs="?", help="GitHub App id (default: $GITHUB_APP_ID)")
    p.add_argument("key_path", nargs="?",
                   help="PEM private key file, '-' for stdin (default: $GITHUB_APP_PRIVATE_KEY_PATH)")
    p.add_argument("--account", help="pick the installation on this account/org login instead of the first one")
    p.add_argument("--installation-id", type=int, help="skip lookup and use this installation")
    p.add_argument("--repo", dest="repos", action="append", metavar="NAME",
                   help="restrict the token to this repository (repeatable)")
    p.add_argument("--emit", choices=EMIT_MODES, help="how to publish the token (default: export)")
    p.add_argument("--var", help="variable name for the token (default: $GITHUB_TOKEN_VAR or GITHUB_TOKEN)")
    return p


def main(argv: Optional[Sequence[str]] = None, env: Optional[Mapping[str, str]] = None) -> int:
    if env is None:
        load_dotenv(dotenv_path=".env")  # handy for local dev
        env = os.environ
    logging.basicConfig(level=env.get("LOGLEVEL", "INFO"), stream=sys.stderr)

    argv = list(sys.argv[1:] if argv is None else argv)
    command: List[str] = []
    if "--" in argv:
        i = argv.index("--")
        argv, command = argv[:i], argv[i + 1:]
    args = build_parser().parse_args(argv)

    step = "input"
    try:
        try:
            settings = load_settings(env)
        except ValueError as e:
            raise InputError(str(e)) from None
        if settings.debug:
            logging.getLogger("ghapp_token").setLevel(logging.DEBUG)

        if command and args.emit:
            raise InputError("--emit cannot be combined with running a command after '--'")

        app_id = (args.app_id or env.get("GITHUB_APP_ID") or "").strip()
        if not app_id:
            raise InputError("GitHub App id missing (argument or GITHUB_APP_ID)")
        private_key = _read_private_key(args.key_path, env)

        step = "issue"
        token = issue_installation_token(
            app_id,
            private_key,
            settings,
            account=args.account or settings.account,
            installation_id=args.installation_id or settings.installation_id,
            repositories=args.repos,
        )

        step = PUBLISH
        var = args.var or settings.token_var
        if command:
            check_var_name(var)
            print(f"Exported {var} to {command[0]}", file=sys.stderr)
            return run_with_token(command, token, var)
        publish(token, var=var, emit=args.emit or "export")
        return 0
    except TokenIssueError as e:
        e.step = e.step or step
        log.error("token issuance failed: %s", e.describe())
        return 2 if isinstance(e, InputError) else 1


if __name__ == "__main__":
    sys.exit(main())
