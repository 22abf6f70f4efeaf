# -----------------------------------------------------------------------------
# SITE IDENTITY - NAME NORMALIZATION
# -----------------------------------------------------------------------------
# Responsibility: Derive the subdomain, DNS hostname and Workers script name
# for a site from user input or the current folder name.
#
# "https://my-site.example.com/", "my-site.example.com" and "my-site" all
# resolve to subdomain "my-site" under base domain "example.com".
# "blog.team.example.com" keeps both labels: subdomain "blog.team",
# script "edgeship-blog--team".
# -----------------------------------------------------------------------------

import re
from pathlib import Path

from src.domain.models import SiteIdentity

SCHEME_PREFIXES = ("https://", "http://")

# Joins labels in script names; sanitize_label() never leaves "--" in a label
LABEL_SEPARATOR = "--"


class InvalidSiteName(Exception):
    """Raised when a name normalizes to an empty subdomain."""

    pass


def normalize_subdomain(raw: str, base_domain: str) -> str:
    """
    Reduce user input to a bare DNS label sequence.

    Args:
        raw: Folder name, subdomain, hostname or URL
        base_domain: Zone the site is published under

    Returns:
        Lowercase subdomain safe to use as a DNS name

    Raises:
        InvalidSiteName: If nothing usable is left
    """
    value = raw.strip()

    lowered = value.lower()
    for prefix in SCHEME_PREFIXES:
        if lowered.startswith(prefix):
            value = value[len(prefix) :]
            break

    value = value.rstrip("/")

    # Keep only the labels left of the base domain, matched on a label boundary
    base = base_domain.lower().strip(".")
    lowered = value.lower()
    if base:
        if lowered == base:
            value = ""
        elif lowered.endswith("." + base):
            value = value[: -(len(base) + 1)]

    labels = [sanitize_label(label) for label in value.split(".")]
    subdomain = ".".join(label for label in labels if label)

    if not subdomain:
        raise InvalidSiteName(f"Cannot derive a subdomain from {raw!r}")
    return subdomain


def sanitize_label(label: str) -> str:
    """Lowercase one DNS label and reduce it to [a-z0-9-]."""
    label = re.sub(r"[\s_]+", "-", label.lower())
    label = re.sub(r"[^a-z0-9-]", "", label)
    return re.sub(r"-{2,}", "-", label).strip("-")


def resource_name_for(subdomain: str, prefix: str) -> str:
    """Workers script name for a subdomain. Script names cannot hold dots."""
    return prefix + subdomain.replace(".", LABEL_SEPARATOR)


def subdomain_for(resource_name: str, prefix: str) -> str:
    """Inverse of resource_name_for()."""
    return resource_name[len(prefix) :].replace(LABEL_SEPARATOR, ".")


def resolve_identity(
    name: str | None,
    base_domain: str,
    prefix: str,
    cwd: str | Path | None = None,
) -> SiteIdentity:
    """
    Build the SiteIdentity for an explicit name or the current folder.

    Deploy and teardown both go through here, so a site is always torn
    down under the same script name it was deployed with.
    """
    source = name if name else Path(cwd or Path.cwd()).resolve().name
    subdomain = normalize_subdomain(source, base_domain)
    return SiteIdentity(
        subdomain=subdomain,
        base_domain=base_domain.lower().strip("."),
        resource_name=resource_name_for(subdomain, prefix),
    )
