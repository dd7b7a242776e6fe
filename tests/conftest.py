from dotenv import load_dotenv
load_dotenv()  # ensures RUN_INTEGRATION / IT_* env are visible to pytest

import pytest
import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa


class _Resp:
    def __init__(self, status_code=200, json_obj=None, text="", headers=None, links=None, url=""):
        self.status_code = status_code
        self._json = json_obj
        self.text = text
        self.reason = "OK" if status_code < 400 else "Error"
        self.headers = headers or {}
        self.links = links or {}
        self.url = url

    def json(self):
        if self._json is None:
            raise ValueError("No JSON")
        return self._json


class FakeSession:
    """Stands in for requests.Session; replays canned responses in order."""

    def __init__(self, *responses):
        self.headers = requests.structures.CaseInsensitiveDict()
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if not self.responses:
            raise AssertionError(f"unexpected request {method} {url}")
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        r.url = r.url or url
        return r


@pytest.fixture
def resp():
    return _Resp


@pytest.fixture
def fake_session():
    return FakeSession


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_pem(rsa_key) -> bytes:
    return rsa_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def public_pem(rsa_key) -> bytes:
    return rsa_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
