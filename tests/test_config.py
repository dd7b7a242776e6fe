import certifi
import pytest

from config import Settings, bool_env, int_env, load_settings


def test_defaults():
    s = load_settings({})
    assert s == Settings()
    assert s.api_base == "https://api.github.com"
    assert s.http_timeout_s == 10
    assert s.token_var == "GITHUB_TOKEN"
    assert s.verify() == certifi.where()


def test_overrides():
    s = load_settings({
        "GITHUB_API": "https://ghe.example.com/api/v3/",
        "HTTP_TIMEOUT_S": "3",
        "GITHUB_API_VERSION": "2026-03-10",
        "GITHUB_APP_ACCOUNT": " octo ",
        "INSTALLATION_ID": "12345",
        "SSL_CERT_FILE": "/etc/ssl/corp.pem",
        "GHAPP_TOKEN_DEBUG": "yes",
    })
    assert s.api_base == "https://ghe.example.com/api/v3"
    assert s.http_timeout_s == 3
    assert s.api_version == "2026-03-10"
    assert s.account == "octo"
    assert s.installation_id == 12345
    assert s.verify() == "/etc/ssl/corp.pem"
    assert s.debug is True


def test_requests_ca_bundle_wins():
    s = load_settings({"REQUESTS_CA_BUNDLE": "/a.pem", "SSL_CERT_FILE": "/b.pem"})
    assert s.verify() == "/a.pem"


@pytest.mark.parametrize("raw, expected", [("1", True), ("TRUE", True), ("on", True), ("0", False), ("nah", False)])
def test_bool_env(raw, expected):
    assert bool_env("X", env={"X": raw}) is expected
    assert bool_env("X", default=True, env={}) is True


def test_int_env():
    assert int_env("N", 5, env={"N": " "}) == 5
    assert int_env("N", env={"N": "7"}) == 7
    with pytest.raises(ValueError):
        int_env("N", env={"N": "seven"})


def test_timeout_accepts_fractions():
    assert load_settings({"HTTP_TIMEOUT_S": "2.5"}).http_timeout_s == 2.5


@pytest.mark.parametrize("raw", ["0", "-1", "nan", "inf", "soon"])
def test_timeout_must_be_positive(raw):
    with pytest.raises(ValueError):
        load_settings({"HTTP_TIMEOUT_S": raw})
