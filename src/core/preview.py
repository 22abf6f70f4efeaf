# -----------------------------------------------------------------------------
# LOCAL PREVIEW
# -----------------------------------------------------------------------------
# Responsibility: Serve a Manifest on localhost with the same routing the
# generated Workers script applies at the edge (exact file, SPA fallback
# for extensionless paths, 404 otherwise). Nothing touches the network.
# -----------------------------------------------------------------------------

from urllib.parse import quote

from flask import Flask, Response, request
from rich.console import Console
from rich.markup import escape

from src.core.site_server import route_request
from src.domain.models import Manifest

console = Console(stderr=True)


def raw_request_path() -> str:
    """
    The request path still percent-encoded, as the edge script sees it.

    request.path is already decoded by the WSGI layer; decoding it again
    would turn a literal "%20" in a file name into a space.
    """
    raw_uri = request.environ.get("RAW_URI") or request.environ.get("REQUEST_URI")
    if raw_uri:
        # WSGI strings carry raw bytes as latin-1
        return quote(raw_uri.split("?", 1)[0], safe="/%", encoding="latin-1")
    return quote(request.path, safe="/")


def create_preview_app(manifest: Manifest) -> Flask:
    """
    Build a Flask app that serves a manifest through route_request().

    Args:
        manifest: Files to serve

    Returns:
        Flask application (run it, or use app.test_client())
    """
    app = Flask(__name__, static_folder=None)

    @app.route("/", defaults={"path": ""})
    @app.route("/<path:path>")
    def serve(path: str) -> Response:
        raw_path = raw_request_path()
        site_response = route_request(manifest, raw_path)
        console.print(f"[dim][PREVIEW] {site_response.status} {escape(raw_path)}[/dim]")

        response = Response(site_response.body, status=site_response.status)
        for header, value in site_response.headers.items():
            response.headers[header] = value
        return response

    return app


def run_preview(manifest: Manifest, host: str = "127.0.0.1", port: int = 8787) -> None:
    """Serve the manifest until interrupted."""
    console.print(f"[green][PREVIEW] Serving {len(manifest)} files on http://{host}:{port}[/green]")
    create_preview_app(manifest).run(host=host, port=port)
