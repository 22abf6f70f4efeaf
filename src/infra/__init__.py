# -----------------------------------------------------------------------------
# INFRASTRUCTURE LAYER
# -----------------------------------------------------------------------------
# Contains low-level infrastructure wrappers:
# - EdgeClient: Cloudflare API wrapper (Workers, routes, DNS, cache)
# -----------------------------------------------------------------------------

from .edge_client import EdgeClient, parse_envelope

__all__ = ["EdgeClient", "parse_envelope"]
