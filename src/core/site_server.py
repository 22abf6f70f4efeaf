# -----------------------------------------------------------------------------
# THE SITE-SERVER GENERATOR - WORKERS SCRIPT BUILDER
# -----------------------------------------------------------------------------
# Responsibility: Turn a Manifest into one self-contained Workers script that
# serves every file from memory, with single-page-application fallback.
#
# How the manifest is embedded:
# - Serialized with json.dumps(ensure_ascii=True) into an array of
#   [path, {type, body}] pairs, body base64-encoded
# - Concatenated between fixed program parts (no placeholder substitution),
#   so nothing inside a file can close the literal early
# - Loaded into a Map, so paths like "__proto__" stay plain keys
#
# Request paths are percent-decoded before lookup, so "/my%20photo.png"
# finds "my photo.png". A malformed escape is a 404.
#
# route_request() mirrors the script's routing in Python. The local preview
# serves through it, and tests use it to pin the policy down.
# -----------------------------------------------------------------------------

import base64
import json
import re
from urllib.parse import unquote_to_bytes

from pydantic import BaseModel, ConfigDict, Field
from rich.console import Console

from src.domain.models import Manifest

console = Console(stderr=True)

INDEX_DOCUMENT = "index.html"
CACHE_CONTROL = "public, max-age=3600"

# A "%" not followed by two hex digits; decodeURIComponent rejects these
MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")

MANIFEST_OPEN = "const MANIFEST = new Map(\n"
MANIFEST_CLOSE = "\n);\n"

PROGRAM_HEADER = """\
// Generated by edgeship. Do not edit: re-run the deploy instead.
"""

PROGRAM_BODY = """
const INDEX_DOCUMENT = "index.html";
const CACHE_CONTROL = "public, max-age=3600";

function decodeBody(encoded) {
  const binary = atob(encoded);
  const bytes = new Uint8Array(binary.length);
  for (let i = 0; i < binary.length; i++) {
    bytes[i] = binary.charCodeAt(i);
  }
  return bytes;
}

function notFound(path) {
  return new Response("Not found: " + path, {
    status: 404,
    headers: { "Content-Type": "text/plain" },
  });
}

function handleRequest(request) {
  const url = new URL(request.url);
  let path;
  try {
    path = decodeURIComponent(url.pathname);
  } catch (e) {
    return notFound(url.pathname);
  }
  if (path === "/") {
    path = "/" + INDEX_DOCUMENT;
  }
  const key = path.startsWith("/") ? path.slice(1) : path;

  const entry = MANIFEST.get(key);
  if (entry !== undefined) {
    return new Response(decodeBody(entry.body), {
      status: 200,
      headers: {
        "Content-Type": entry.type,
        "Cache-Control": CACHE_CONTROL,
        "Access-Control-Allow-Origin": "*",
      },
    });
  }

  const index = MANIFEST.get(INDEX_DOCUMENT);
  if (index !== undefined && !key.includes(".")) {
    return new Response(decodeBody(index.body), {
      status: 200,
      headers: {
        "Content-Type": "text/html",
        "Cache-Control": CACHE_CONTROL,
      },
    });
  }

  return notFound(path);
}

addEventListener("fetch", (event) => {
  event.respondWith(handleRequest(event.request));
});
"""


class SiteResponse(BaseModel):
    """A response as the generated script would produce it."""

    model_config = ConfigDict(frozen=True)

    status: int
    body: bytes
    headers: dict[str, str] = Field(default_factory=dict)


def serialize_manifest(manifest: Manifest) -> str:
    """
    Encode a manifest as a JSON array literal safe to embed in JavaScript.

    ensure_ascii escapes every non-ASCII character, including U+2028 and
    U+2029 which JSON allows but older JavaScript string literals do not.
    """
    pairs = [
        [
            path,
            {
                "type": manifest.entries[path].media_type,
                "body": base64.b64encode(manifest.entries[path].content).decode("ascii"),
            },
        ]
        for path in manifest.paths()
    ]
    return json.dumps(pairs, ensure_ascii=True, separators=(",", ":"))


def generate_site_server(manifest: Manifest) -> str:
    """
    Build the Workers script for a manifest.

    Args:
        manifest: Files to embed

    Returns:
        Complete JavaScript program text, ready to upload
    """
    program = "".join(
        [PROGRAM_HEADER, MANIFEST_OPEN, serialize_manifest(manifest), MANIFEST_CLOSE, PROGRAM_BODY]
    )

    console.print(
        f"[cyan][GENERATOR] Site server built: {len(manifest)} files, "
        f"{len(program)} bytes of script[/cyan]"
    )
    return program


def decode_path(path: str) -> str | None:
    """
    Percent-decode a URL path the way decodeURIComponent does.

    Returns None for malformed escapes or bytes that are not valid UTF-8,
    where the generated script's decodeURIComponent would throw.
    """
    if MALFORMED_ESCAPE.search(path):
        return None
    try:
        return unquote_to_bytes(path).decode("utf-8")
    except UnicodeDecodeError:
        return None


def not_found(path: str) -> SiteResponse:
    return SiteResponse(
        status=404,
        body=f"Not found: {path}".encode(),
        headers={"Content-Type": "text/plain"},
    )


def route_request(manifest: Manifest, raw_path: str) -> SiteResponse:
    """
    Resolve a request path exactly as the generated script does.

    Args:
        manifest: Files being served
        raw_path: URL path as sent on the wire, still percent-encoded
            (e.g. "/", "/about", "/my%20photo.png")

    Returns:
        SiteResponse with status, body and headers
    """
    path = decode_path(raw_path)
    if path is None:
        return not_found(raw_path)

    if path == "/":
        path = "/" + INDEX_DOCUMENT
    key = path[1:] if path.startswith("/") else path

    entry = manifest.get(key)
    if entry is not None:
        return SiteResponse(
            status=200,
            body=entry.content,
            headers={
                "Content-Type": entry.media_type,
                "Cache-Control": CACHE_CONTROL,
                "Access-Control-Allow-Origin": "*",
            },
        )

    index = manifest.get(INDEX_DOCUMENT)
    if index is not None and "." not in key:
        return SiteResponse(
            status=200,
            body=index.content,
            headers={"Content-Type": "text/html", "Cache-Control": CACHE_CONTROL},
        )

    return not_found(path)
