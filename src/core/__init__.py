# -----------------------------------------------------------------------------
# CORE LAYER
# -----------------------------------------------------------------------------
# The deployment pipeline of Edgeship:
# - Manifest Builder: site folder -> Manifest
# - Site-Server Generator: Manifest -> Workers script
# - Provisioner: DNS -> script -> route -> cache purge, teardown, listing
# - Preview: local Flask server with the same routing
# - Config: credentials and settings from the environment
# -----------------------------------------------------------------------------

from .config import ConfigurationMissing, RemoteCredentials, Settings, load_credentials
from .identity import InvalidSiteName, resolve_identity
from .manifest import EmptyManifest, NoFilesFound, build_manifest
from .provisioner import Provisioner, RemoteCallFailed
from .site_server import generate_site_server, route_request

__all__ = [
    "ConfigurationMissing", "RemoteCredentials", "Settings", "load_credentials",
    "InvalidSiteName", "resolve_identity",
    "EmptyManifest", "NoFilesFound", "build_manifest",
    "Provisioner", "RemoteCallFailed",
    "generate_site_server", "route_request",
]
