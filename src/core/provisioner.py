# Copyright 2026 Pramod Kumar Voola
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

# -----------------------------------------------------------------------------
# THE PROVISIONER - EDGE DEPLOYMENT ORCHESTRATOR
# -----------------------------------------------------------------------------
# Responsibility: Drive the Cloudflare API through idempotent "ensure
# deployed" and "ensure removed" workflows for a static site.
#
# Deploy order:
# 1. DNS record   (create only if missing)      - failure is fatal
# 2. Worker script (always uploaded)            - failure is fatal
# 3. Route binding ("already exists" is fine)   - other failures are fatal
# 4. Cache purge                                - failure is logged only
#
# Every step re-checks or tolerates existing state, so re-running a deploy
# that was interrupted picks up where it left off.
#
# Teardown deletes the Worker script only. The DNS record and route are
# left in place on purpose.
# -----------------------------------------------------------------------------

from pathlib import Path

from rich.console import Console
from rich.markup import escape

from src.core.identity import resolve_identity, subdomain_for
from src.core.manifest import build_manifest
from src.core.site_server import generate_site_server
from src.domain.models import (
    ApiResult,
    DeployReport,
    ProvisioningPlan,
    RemoteCredentials,
    Settings,
    SiteIdentity,
    StepOutcome,
)
from src.infra.edge_client import EdgeClient

console = Console(stderr=True)

# Discard-prefix address: the record only has to exist and be proxied,
# the Worker answers before any origin is contacted.
PLACEHOLDER_ADDRESS = "100::"

ROUTE_EXISTS_MARKER = "route with the same pattern already exists"

STEP_DNS = "dns_record"
STEP_SCRIPT = "upload_script"
STEP_ROUTE = "create_route"
STEP_PURGE = "purge_cache"
STEP_DELETE = "delete_script"
STEP_LIST = "list_scripts"


class RemoteCallFailed(Exception):
    """Raised when the platform rejects a step that deployment cannot skip."""

    def __init__(self, step: str, message: str, plan: ProvisioningPlan | None = None) -> None:
        super().__init__(f"{step}: {message}")
        self.step = step
        self.message = message
        self.plan = plan


def is_route_conflict(result: ApiResult) -> bool:
    """True when a route create failed only because the pattern is already bound."""
    return any(ROUTE_EXISTS_MARKER in error.lower() for error in result.errors)


class Provisioner:
    """
    Edge Deployment Orchestrator.

    Sequences EdgeClient calls one at a time; each call completes before
    the next is attempted. Nothing here reads the environment: credentials
    and settings arrive through the constructor.
    """

    def __init__(
        self,
        credentials: RemoteCredentials,
        client: EdgeClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._credentials = credentials
        self._settings = settings or Settings()
        self._client = client or EdgeClient(credentials, self._settings)

    @property
    def prefix(self) -> str:
        return self._settings.script_prefix

    def identity_for(self, name: str | None = None, cwd: str | Path | None = None) -> SiteIdentity:
        """Resolve the SiteIdentity for an explicit name or the current folder."""
        return resolve_identity(name, self._credentials.base_domain, self.prefix, cwd=cwd)

    # -------------------------------------------------------------------------
    # Deploy
    # -------------------------------------------------------------------------

    def deploy(
        self,
        source_dir: str | Path,
        name: str | None = None,
        cwd: str | Path | None = None,
    ) -> DeployReport:
        """
        Package a directory and publish it at its subdomain.

        Args:
            source_dir: Site directory to package
            name: Subdomain override (defaults to the current folder name,
                resolved exactly as teardown resolves it)
            cwd: Folder whose name is used when no override is given

        Returns:
            DeployReport with the live URL and the per-step plan

        Raises:
            EmptyManifest: If the directory has nothing to deploy (no network call made)
            InvalidSiteName: If no subdomain can be derived
            RemoteCallFailed: If a fatal step fails
        """
        source_dir = Path(source_dir)
        identity = self.identity_for(name, cwd=cwd)

        manifest = build_manifest(source_dir)
        program = generate_site_server(manifest)

        plan = self.provision(identity, program)

        console.print(f"[green][PROVISIONER] LIVE: {identity.url}[/green]")
        return DeployReport(
            identity=identity, url=identity.url, file_count=len(manifest), plan=plan
        )

    def provision(self, identity: SiteIdentity, program: str) -> ProvisioningPlan:
        """
        Ensure DNS record, script, route and a fresh cache for a site.

        Args:
            identity: Where the site lives
            program: Generated Workers script text

        Returns:
            ProvisioningPlan with one StepResult per step

        Raises:
            RemoteCallFailed: On the first fatal failure; carries the partial plan
        """
        plan = ProvisioningPlan()
        console.print(
            f"[cyan][PROVISIONER] Deploying {identity.resource_name} -> {identity.hostname}[/cyan]"
        )

        self._ensure_dns_record(identity, plan)
        self._upload_script(identity, program, plan)
        self._ensure_route(identity, plan)
        self._purge_cache(plan)

        return plan

    def _fail(self, plan: ProvisioningPlan, step: str, message: str) -> RemoteCallFailed:
        plan.record(step, StepOutcome.FAILED, message)
        console.print(f"[red][PROVISIONER] {step} failed: {escape(message)}[/red]")
        return RemoteCallFailed(step, message, plan)

    def _ensure_dns_record(self, identity: SiteIdentity, plan: ProvisioningPlan) -> None:
        query, count = self._client.query_dns_record(identity.hostname)
        if not query.success:
            raise self._fail(plan, STEP_DNS, query.message)

        if count > 0:
            console.print(f"[dim][PROVISIONER] DNS record exists: {identity.hostname}[/dim]")
            plan.record(STEP_DNS, StepOutcome.ALREADY_SATISFIED, f"{count} record(s)")
            return

        created = self._client.create_dns_record(
            identity.hostname, PLACEHOLDER_ADDRESS, proxied=True
        )
        if not created.success:
            raise self._fail(plan, STEP_DNS, created.message)

        console.print(f"[green][PROVISIONER] DNS record created: {identity.hostname}[/green]")
        plan.record(STEP_DNS, StepOutcome.APPLIED, identity.hostname)

    def _upload_script(self, identity: SiteIdentity, program: str, plan: ProvisioningPlan) -> None:
        uploaded = self._client.upload_script(identity.resource_name, program)
        if not uploaded.success:
            raise self._fail(plan, STEP_SCRIPT, uploaded.message)

        console.print(f"[green][PROVISIONER] Script uploaded: {identity.resource_name}[/green]")
        plan.record(STEP_SCRIPT, StepOutcome.APPLIED, identity.resource_name)

    def _ensure_route(self, identity: SiteIdentity, plan: ProvisioningPlan) -> None:
        route = self._client.create_route(identity.route_pattern, identity.resource_name)
        if route.success:
            console.print(f"[green][PROVISIONER] Route bound: {identity.route_pattern}[/green]")
            plan.record(STEP_ROUTE, StepOutcome.APPLIED, identity.route_pattern)
            return

        if is_route_conflict(route):
            console.print(f"[dim][PROVISIONER] Route exists: {identity.route_pattern}[/dim]")
            plan.record(STEP_ROUTE, StepOutcome.ALREADY_SATISFIED, identity.route_pattern)
            return

        raise self._fail(plan, STEP_ROUTE, route.message)

    def _purge_cache(self, plan: ProvisioningPlan) -> None:
        purged = self._client.purge_cache()
        if purged.success:
            plan.record(STEP_PURGE, StepOutcome.APPLIED)
            return

        # Stale cache expires on its own; never block a finished deploy on it
        console.print(
            f"[yellow][PROVISIONER] Cache purge failed (continuing): {escape(purged.message)}[/yellow]"
        )
        plan.record(STEP_PURGE, StepOutcome.FAILED, purged.message)

    # -------------------------------------------------------------------------
    # Teardown
    # -------------------------------------------------------------------------

    def teardown(self, name: str | None = None, cwd: str | Path | None = None) -> str:
        """
        Delete a site's Worker script.

        The DNS record and route binding are NOT removed; they stay in the
        zone and are reused if the site is deployed again.

        Returns:
            Acknowledgement naming the removed script

        Raises:
            RemoteCallFailed: With the platform's message verbatim
        """
        identity = self.identity_for(name, cwd=cwd)
        deleted = self._client.delete_script(identity.resource_name)
        if not deleted.success:
            console.print(f"[red][PROVISIONER] Teardown failed: {escape(deleted.message)}[/red]")
            raise RemoteCallFailed(STEP_DELETE, deleted.message)

        console.print(
            f"[yellow][PROVISIONER] DNS record and route for {identity.hostname} "
            "left in place[/yellow]"
        )
        return f"Removed {identity.resource_name} ({identity.url})"

    # -------------------------------------------------------------------------
    # List
    # -------------------------------------------------------------------------

    def list_sites(self) -> list[str]:
        """
        URLs of every site deployed under this prefix.

        Returns:
            Sorted list of https URLs; empty when nothing is deployed

        Raises:
            RemoteCallFailed: If the script listing itself fails
        """
        result, names = self._client.list_scripts()
        if not result.success:
            raise RemoteCallFailed(STEP_LIST, result.message)

        base_domain = self._credentials.base_domain
        subdomains = sorted(
            subdomain_for(name, self.prefix)
            for name in names
            if name.startswith(self.prefix) and len(name) > len(self.prefix)
        )
        return [f"https://{sub}.{base_domain}" for sub in subdomains]
