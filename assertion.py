"""
GitHub App JWT ("assertion") issuance.

GitHub accepts an App JWT for at most 10 minutes and rejects tokens whose
`iat` lies in the future, so the window is backdated by a minute to absorb
clock drift between this host and GitHub.
"""
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from jwt.utils import base64url_encode

from errors import InputError, KeyParseError, SigningError

CLOCK_SKEW_S = 60
MAX_VALIDITY_S = 600

HEADER: Dict[str, str] = {"typ": "JWT", "alg": "RS256"}


def signing_window(now: Optional[int] = None) -> Tuple[int, int]:
    """Return (iat, exp) in epoch seconds."""
    if now is None:
        now = int(time.time())
    return now - CLOCK_SKEW_S, now + MAX_VALIDITY_S


def b64url(data: bytes) -> str:
    # base64url_encode already strips "=" and uses the -_ alphabet
    return base64url_encode(data).decode("ascii")


def _json_segment(obj: Dict[str, Any]) -> str:
    return b64url(json.dumps(obj, separators=(",", ":")).encode("utf-8"))


@dataclass(frozen=True)
class SigningInput:
    header: str
    payload: str

    @property
    def signing_input(self) -> str:
        return f"{self.header}.{self.payload}"


def _issuer(app_id: Union[int, str]) -> Union[int, str]:
    s = str(app_id).strip()
    if not s:
        raise InputError("GitHub App id is empty")
    # numeric ids go out as JSON numbers, like GitHub's own examples
    return int(s) if s.isascii() and s.isdigit() else s


def build_signing_input(app_id: Union[int, str], issued_at: int, expires_at: int) -> SigningInput:
    payload = {"iat": int(issued_at), "exp": int(expires_at), "iss": _issuer(app_id)}
    return SigningInput(header=_json_segment(HEADER), payload=_json_segment(payload))


def load_signing_key(pem: Union[bytes, str]) -> rsa.RSAPrivateKey:
    if isinstance(pem, str):
        pem = pem.encode("utf-8")
    if not pem or not pem.strip():
        raise KeyParseError("private key is empty")
    try:
        key = serialization.load_pem_private_key(pem, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        # message from cryptography never echoes key bytes
        raise KeyParseError(f"could not parse PEM private key: {e}") from None
    if not isinstance(key, rsa.RSAPrivateKey):
        raise SigningError(f"RS256 needs an RSA key, got {type(key).__name__}")
    return key


def sign(pem: Union[bytes, str], signing_input: str) -> str:
    """RS256 signature over `signing_input`, base64url-encoded."""
    key = load_signing_key(pem)
    try:
        sig = key.sign(signing_input.encode("utf-8"), padding.PKCS1v15(), hashes.SHA256())
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise SigningError(f"RS256 signing failed: {e}") from None
    return b64url(sig)


def issue_assertion(app_id: Union[int, str], pem: Union[bytes, str], now: Optional[int] = None) -> str:
    iat, exp = signing_window(now)
    si = build_signing_input(app_id, iat, exp)
    return f"{si.signing_input}.{sign(pem, si.signing_input)}"
