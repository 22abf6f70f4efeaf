# -----------------------------------------------------------------------------
# EDGE INFRASTRUCTURE - Cloudflare API Client
# -----------------------------------------------------------------------------
# Responsibility: Thin, typed wrapper over the Cloudflare v4 HTTP API for the
# resources a site needs: Workers scripts, Workers routes, DNS records and
# the zone cache.
#
# Contract:
# - Every operation returns an ApiResult parsed by parse_envelope()
# - No retries; no exceptions for API or transport failures
#   (they come back as success=False with the raw error text)
#
# Security:
# - The API token only ever travels in the Authorization header
# - Tokens are NEVER logged
# -----------------------------------------------------------------------------

import requests
from rich.console import Console
from rich.markup import escape

from src.domain.models import ApiResult, RemoteCredentials, Settings

console = Console(stderr=True)


def parse_envelope(response: requests.Response) -> ApiResult:
    """
    Normalize a Cloudflare JSON envelope into an ApiResult.

    The platform reports failures in two shapes:
    - {"success": false, "errors": [{"code": ..., "message": ...}]}
    - {"success": false, "error": "..."}
    Anything that is not JSON is a failure carrying the raw body.

    Args:
        response: HTTP response from the platform

    Returns:
        ApiResult with success flag, error messages and `result` payload
    """
    try:
        data = response.json()
    except ValueError:
        body = response.text.strip() or response.reason or "empty response"
        return ApiResult(success=False, errors=[f"HTTP {response.status_code}: {body}"])

    if not isinstance(data, dict):
        return ApiResult(
            success=False, errors=[f"HTTP {response.status_code}: unexpected body {data!r}"]
        )

    success = bool(data.get("success")) and response.ok
    result = data.get("result")
    if success:
        return ApiResult(success=True, result=result)

    errors: list[str] = []
    for err in data.get("errors") or []:
        if isinstance(err, dict) and err.get("message"):
            errors.append(str(err["message"]))
        elif isinstance(err, str) and err:
            errors.append(err)

    if not errors and data.get("error"):
        errors.append(str(data["error"]))

    if not errors:
        errors.append(f"HTTP {response.status_code}: {response.text.strip()}")

    return ApiResult(success=False, errors=errors, result=result)


class EdgeClient:
    """
    Cloudflare Resource Client.

    One instance per invocation; credentials are fixed at construction.
    """

    def __init__(
        self,
        credentials: RemoteCredentials,
        settings: Settings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._credentials = credentials
        self._settings = settings or Settings()
        self._session = session or requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {credentials.api_token}"})

    # -------------------------------------------------------------------------
    # Transport
    # -------------------------------------------------------------------------

    def _account_url(self, path: str) -> str:
        return f"{self._settings.api_url}/accounts/{self._credentials.account_id}/{path}"

    def _zone_url(self, path: str) -> str:
        return f"{self._settings.api_url}/zones/{self._credentials.zone_id}/{path}"

    def _request(self, method: str, url: str, **kwargs) -> ApiResult:
        """Send one request. Transport errors become failed ApiResults."""
        try:
            response = self._session.request(
                method, url, timeout=self._settings.http_timeout, **kwargs
            )
        except requests.RequestException as e:
            console.print(f"[red][EDGE API] {method} failed: {escape(str(e))}[/red]")
            return ApiResult(success=False, errors=[f"Request failed: {e}"])

        return parse_envelope(response)

    # -------------------------------------------------------------------------
    # Workers scripts
    # -------------------------------------------------------------------------

    def upload_script(self, name: str, program: str) -> ApiResult:
        """Create or replace a Workers script."""
        console.print(f"[cyan][EDGE API] Uploading script: {name}[/cyan]")
        return self._request(
            "PUT",
            self._account_url(f"workers/scripts/{name}"),
            data=program.encode("utf-8"),
            headers={"Content-Type": "application/javascript"},
        )

    def delete_script(self, name: str) -> ApiResult:
        console.print(f"[cyan][EDGE API] Deleting script: {name}[/cyan]")
        return self._request("DELETE", self._account_url(f"workers/scripts/{name}"))

    def list_scripts(self) -> tuple[ApiResult, list[str]]:
        """
        List every Workers script on the account.

        Returns:
            (result, script names); names is empty when the call failed
        """
        result = self._request("GET", self._account_url("workers/scripts"))
        if not result.success:
            return result, []

        names = [
            item["id"]
            for item in (result.result or [])
            if isinstance(item, dict) and item.get("id")
        ]
        return result, names

    # -------------------------------------------------------------------------
    # Routes
    # -------------------------------------------------------------------------

    def create_route(self, pattern: str, script_name: str) -> ApiResult:
        console.print(f"[cyan][EDGE API] Binding route {pattern} -> {script_name}[/cyan]")
        return self._request(
            "POST",
            self._zone_url("workers/routes"),
            json={"pattern": pattern, "script": script_name},
        )

    # -------------------------------------------------------------------------
    # DNS
    # -------------------------------------------------------------------------

    def query_dns_record(self, name: str) -> tuple[ApiResult, int]:
        """
        Count DNS records with an exact name.

        Returns:
            (result, number of matching records); count is 0 on failure
        """
        result = self._request("GET", self._zone_url("dns_records"), params={"name": name})
        if not result.success:
            return result, 0
        records = result.result if isinstance(result.result, list) else []
        return result, len(records)

    def create_dns_record(self, name: str, content: str, proxied: bool = True) -> ApiResult:
        console.print(f"[cyan][EDGE API] Creating DNS record: {name}[/cyan]")
        return self._request(
            "POST",
            self._zone_url("dns_records"),
            json={"type": "AAAA", "name": name, "content": content, "proxied": proxied},
        )

    # -------------------------------------------------------------------------
    # Cache
    # -------------------------------------------------------------------------

    def purge_cache(self) -> ApiResult:
        console.print("[cyan][EDGE API] Purging zone cache[/cyan]")
        return self._request(
            "POST", self._zone_url("purge_cache"), json={"purge_everything": True}
        )
