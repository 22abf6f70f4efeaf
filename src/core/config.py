# -----------------------------------------------------------------------------
# EDGESHIP - CONFIGURATION
# -----------------------------------------------------------------------------
# Responsibility: Turn environment variables into explicit, immutable
# configuration values. Nothing deeper in the pipeline reads os.environ;
# the entry point loads once and threads the values into constructors.
#
# Required:
# - CLOUDFLARE_API_TOKEN, CLOUDFLARE_ACCOUNT_ID, CLOUDFLARE_ZONE_ID
# - EDGESHIP_BASE_DOMAIN
#
# Optional:
# - EDGESHIP_SCRIPT_PREFIX (default "edgeship-")
# - CLOUDFLARE_API_URL (default Cloudflare v4 API)
# - EDGESHIP_HTTP_TIMEOUT (seconds, default 30)
# -----------------------------------------------------------------------------

import os
from collections.abc import Mapping

from rich.console import Console

from src.domain.models import (
    DEFAULT_API_URL,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_SCRIPT_PREFIX,
    RemoteCredentials,
    Settings,
)

console = Console(stderr=True)

# Environment variable -> RemoteCredentials field
REQUIRED_VARIABLES = {
    "CLOUDFLARE_API_TOKEN": "api_token",
    "CLOUDFLARE_ACCOUNT_ID": "account_id",
    "CLOUDFLARE_ZONE_ID": "zone_id",
    "EDGESHIP_BASE_DOMAIN": "base_domain",
}


class ConfigurationMissing(Exception):
    """Raised when a required credential is absent. Fatal, never retried."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            f"Missing required configuration: {', '.join(missing)}. "
            "Set these environment variables (or add them to .env)."
        )
        self.missing = missing


def load_credentials(environ: Mapping[str, str] | None = None) -> RemoteCredentials:
    """
    Build RemoteCredentials from the environment.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Validated RemoteCredentials

    Raises:
        ConfigurationMissing: If any required variable is absent or blank
    """
    env = os.environ if environ is None else environ

    values: dict[str, str] = {}
    missing: list[str] = []
    for variable, field_name in REQUIRED_VARIABLES.items():
        value = (env.get(variable) or "").strip()
        if value:
            values[field_name] = value
        else:
            missing.append(variable)

    if missing:
        raise ConfigurationMissing(missing)

    # Normalize the domain the same way user input is normalized later
    values["base_domain"] = values["base_domain"].lower().strip(".")

    console.print(
        f"[green][CONFIG] Credentials loaded for {values['base_domain']}[/green]"
    )
    return RemoteCredentials(**values)


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from optional environment variables."""
    env = os.environ if environ is None else environ

    timeout_raw = env.get("EDGESHIP_HTTP_TIMEOUT", "")
    try:
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_HTTP_TIMEOUT
        if timeout <= 0:
            raise ValueError(timeout_raw)
    except ValueError:
        console.print(
            f"[yellow][CONFIG] Ignoring invalid EDGESHIP_HTTP_TIMEOUT={timeout_raw!r}[/yellow]"
        )
        timeout = DEFAULT_HTTP_TIMEOUT

    return Settings(
        script_prefix=env.get("EDGESHIP_SCRIPT_PREFIX") or DEFAULT_SCRIPT_PREFIX,
        api_url=(env.get("CLOUDFLARE_API_URL") or DEFAULT_API_URL).rstrip("/"),
        http_timeout=timeout,
    )
