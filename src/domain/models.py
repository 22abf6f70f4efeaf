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
# DOMAIN MODELS - SITE PACKAGING & PROVISIONING
# -----------------------------------------------------------------------------
# These Pydantic models define what moves through the deployment pipeline.
# The Manifest Builder produces a Manifest; the Site-Server Generator embeds
# it; the Provisioner reports a ProvisioningPlan built from ApiResults.
# -----------------------------------------------------------------------------

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FileEntry(BaseModel):
    """
    A single static asset captured from the site directory.

    Content is kept as raw bytes so images and fonts survive the
    base64 round trip through the generated Workers script unchanged.
    """

    # Entries are immutable once built
    model_config = ConfigDict(frozen=True)

    relative_path: str = Field(
        ..., min_length=1, description="Forward-slash path relative to the site root"
    )
    content: bytes = Field(..., description="Raw file bytes, no transcoding")
    media_type: str = Field(..., min_length=1, description="Content-Type served for the file")


class Manifest(BaseModel):
    """
    Every file to be served, keyed by exact relative path.

    An empty manifest is rejected: there is nothing to deploy.
    """

    entries: dict[str, FileEntry]

    @field_validator("entries")
    @classmethod
    def _not_empty(cls, value: dict[str, FileEntry]) -> dict[str, FileEntry]:
        if not value:
            raise ValueError("manifest must contain at least one file")
        return value

    def get(self, path: str) -> FileEntry | None:
        """Look up an entry by exact relative path."""
        return self.entries.get(path)

    def paths(self) -> list[str]:
        return sorted(self.entries)

    def total_bytes(self) -> int:
        return sum(len(entry.content) for entry in self.entries.values())

    def __contains__(self, path: object) -> bool:
        return path in self.entries

    def __len__(self) -> int:
        return len(self.entries)


class SiteIdentity(BaseModel):
    """
    Where a site lives on the edge.

    resource_name names the Workers script; subdomain + base_domain name
    the DNS record and the route pattern.
    """

    model_config = ConfigDict(frozen=True)

    subdomain: str = Field(..., min_length=1)
    base_domain: str = Field(..., min_length=1)
    resource_name: str = Field(..., min_length=1)

    @property
    def hostname(self) -> str:
        return f"{self.subdomain}.{self.base_domain}"

    @property
    def route_pattern(self) -> str:
        return f"{self.hostname}/*"

    @property
    def url(self) -> str:
        return f"https://{self.hostname}"


class StepOutcome(str, Enum):
    """Tri-state result of one provisioning step."""

    APPLIED = "applied"
    ALREADY_SATISFIED = "already_satisfied"
    FAILED = "failed"


class StepResult(BaseModel):
    """Outcome of a single step in a ProvisioningPlan."""

    step: str
    outcome: StepOutcome
    detail: str = ""


class ProvisioningPlan(BaseModel):
    """Ordered record of the steps a deploy went through. Never persisted."""

    steps: list[StepResult] = Field(default_factory=list)

    def record(self, step: str, outcome: StepOutcome, detail: str = "") -> StepResult:
        result = StepResult(step=step, outcome=outcome, detail=detail)
        self.steps.append(result)
        return result

    def outcome_of(self, step: str) -> StepOutcome | None:
        for result in self.steps:
            if result.step == step:
                return result.outcome
        return None


class DeployReport(BaseModel):
    """What a successful deploy hands back to the caller."""

    identity: SiteIdentity
    url: str
    file_count: int
    plan: ProvisioningPlan


class ApiResult(BaseModel):
    """
    Normalized platform response.

    The platform answers with a JSON envelope carrying a boolean `success`.
    Failures describe themselves either as `errors: [{message}]` or as a
    bare `error` string; both collapse into `errors` here.
    """

    success: bool
    errors: list[str] = Field(default_factory=list)
    result: Any = None

    @property
    def message(self) -> str:
        return "; ".join(self.errors) if self.errors else ""


# =============================================================================
# CONFIGURATION VALUES
# =============================================================================
# Loaded once by src.core.config and threaded into constructors. They live
# here so the infra layer can depend on them without importing core.

DEFAULT_API_URL = "https://api.cloudflare.com/client/v4"
DEFAULT_SCRIPT_PREFIX = "edgeship-"
DEFAULT_HTTP_TIMEOUT = 30


class RemoteCredentials(BaseModel):
    """Read-only credentials shared by every remote call of one invocation."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    api_token: str = Field(..., min_length=1)
    account_id: str = Field(..., min_length=1)
    zone_id: str = Field(..., min_length=1)
    base_domain: str = Field(..., min_length=1)

    def __repr__(self) -> str:
        # Keep the token out of tracebacks and logs
        return (
            f"RemoteCredentials(account_id={self.account_id!r}, "
            f"zone_id={self.zone_id!r}, base_domain={self.base_domain!r})"
        )

    __str__ = __repr__


class Settings(BaseModel):
    """Tunables with sensible defaults."""

    model_config = ConfigDict(frozen=True)

    script_prefix: str = DEFAULT_SCRIPT_PREFIX
    api_url: str = DEFAULT_API_URL
    http_timeout: float = Field(default=DEFAULT_HTTP_TIMEOUT, gt=0)
