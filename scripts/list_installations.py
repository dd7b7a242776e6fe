import json
import os
from dataclasses import asdict

from dotenv import load_dotenv

from app import _read_private_key
from assertion import issue_assertion
from config import load_settings
from github import GitHubClient

# Print every installation of the App, to pick --account / --installation-id.
load_dotenv()
settings = load_settings()
APP_ID = os.environ["GITHUB_APP_ID"]
APP_PEM = _read_private_key(None, os.environ)

gh = GitHubClient(
    issue_assertion(APP_ID, APP_PEM),
    base_url=settings.api_base,
    timeout_s=settings.http_timeout_s,
    api_version=settings.api_version,
    user_agent=settings.user_agent,
    verify=settings.verify(),
)
print(json.dumps([asdict(inst) for inst in gh.list_installations()], indent=2))
