# -----------------------------------------------------------------------------
# DOMAIN LAYER
# -----------------------------------------------------------------------------
# Contains the Pydantic models that flow through the deployment pipeline:
# Manifest Builder -> Site-Server Generator -> Provisioner -> Edge Client.
# -----------------------------------------------------------------------------

from .models import (
    ApiResult,
    DeployReport,
    FileEntry,
    Manifest,
    ProvisioningPlan,
    RemoteCredentials,
    Settings,
    SiteIdentity,
    StepOutcome,
    StepResult,
)

__all__ = [
    "ApiResult",
    "DeployReport",
    "FileEntry",
    "Manifest",
    "ProvisioningPlan",
    "RemoteCredentials",
    "Settings",
    "SiteIdentity",
    "StepOutcome",
    "StepResult",
]
