"""
Pytest configuration and fixtures for Edgeship tests.
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from src.domain.models import ApiResult, RemoteCredentials, Settings  # noqa: E402

# Smallest valid PNG header plus bytes that are not valid UTF-8
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\xff\xfe\x00\x80"


@pytest.fixture
def credentials():
    """Fake credentials; never sent anywhere."""
    return RemoteCredentials(
        api_token="test-api-token",
        account_id="acct-123",
        zone_id="zone-456",
        base_domain="example.com",
    )


@pytest.fixture
def settings():
    return Settings(script_prefix="edgeship-", api_url="https://api.test/client/v4")


@pytest.fixture
def site_dir(tmp_path):
    """A small single-page-app folder with assets and junk to exclude."""
    site = tmp_path / "my-site"
    site.mkdir()
    (site / "index.html").write_bytes(b"<!doctype html><h1>Home</h1>")
    (site / "about.html").write_bytes(b"<h1>About</h1>")
    (site / "css").mkdir()
    (site / "css" / "app.css").write_bytes(b"body { color: red; }\r\n")
    (site / "img").mkdir()
    (site / "img" / "logo.png").write_bytes(PNG_BYTES)

    (site / ".env").write_text("SECRET=1")
    (site / ".git").mkdir()
    (site / ".git" / "HEAD").write_text("ref: refs/heads/main")
    (site / "node_modules").mkdir()
    (site / "node_modules" / "lib.js").write_text("module.exports = 1")
    return site


def ok(result=None) -> ApiResult:
    return ApiResult(success=True, result=result)


def failed(*messages: str) -> ApiResult:
    return ApiResult(success=False, errors=list(messages))


@pytest.fixture
def fake_client():
    """EdgeClient stand-in where every call succeeds and nothing exists yet."""
    client = MagicMock()
    client.query_dns_record.return_value = (ok([]), 0)
    client.create_dns_record.return_value = ok({"id": "dns-1"})
    client.upload_script.return_value = ok({"id": "edgeship-my-site"})
    client.create_route.return_value = ok({"id": "route-1"})
    client.purge_cache.return_value = ok({"id": "zone-456"})
    client.delete_script.return_value = ok(None)
    client.list_scripts.return_value = (ok([]), [])
    return client
