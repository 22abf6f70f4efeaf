# -----------------------------------------------------------------------------
# THE MANIFEST BUILDER - SITE DIRECTORY SCANNER
# -----------------------------------------------------------------------------
# Responsibility: Walk a site directory and capture every servable file as a
# FileEntry (relative path, raw bytes, media type).
#
# Exclusions:
# - Hidden entries (any path segment starting with ".")
# - Version-control metadata (.git, .svn, .hg)
# - Dependency caches (node_modules, bower_components, __pycache__)
#
# Media type resolution order:
# 1. Extension table
# 2. System `file --mime-type` sniffer, when installed
# 3. application/octet-stream
# -----------------------------------------------------------------------------

import os
import shutil
import subprocess
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from src.domain.models import FileEntry, Manifest

# Progress goes to stderr; stdout is reserved for URLs and results
console = Console(stderr=True)

DEFAULT_MEDIA_TYPE = "application/octet-stream"
SNIFF_TIMEOUT_SECONDS = 5

VCS_DIRECTORIES = frozenset({".git", ".svn", ".hg"})
DEPENDENCY_DIRECTORIES = frozenset({"node_modules", "bower_components", "__pycache__"})

MEDIA_TYPES = {
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "js": "application/javascript",
    "mjs": "application/javascript",
    "json": "application/json",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "svg": "image/svg+xml",
    "ico": "image/x-icon",
    "webp": "image/webp",
    "avif": "image/avif",
    "woff": "font/woff",
    "woff2": "font/woff2",
    "ttf": "font/ttf",
    "pdf": "application/pdf",
    "xml": "application/xml",
    "txt": "text/plain",
    "mp3": "audio/mpeg",
    "ogg": "audio/ogg",
    "mp4": "video/mp4",
    "webm": "video/webm",
}


class EmptyManifest(Exception):
    """Raised when a site directory has no deployable files."""

    pass


# Historical name kept for callers that catch the scanner's own error
NoFilesFound = EmptyManifest


def is_excluded(relative_path: str) -> bool:
    """
    Check whether a relative path must be left out of the manifest.

    Args:
        relative_path: Forward-slash path relative to the site root

    Returns:
        True if any segment is hidden, VCS metadata or a dependency cache
    """
    for segment in relative_path.split("/"):
        if segment.startswith("."):
            return True
        if segment in VCS_DIRECTORIES or segment in DEPENDENCY_DIRECTORIES:
            return True
    return False


def sniff_media_type(path: Path) -> str | None:
    """Ask the system `file` utility for a MIME type. None if unavailable."""
    file_cmd = shutil.which("file")
    if not file_cmd:
        return None

    try:
        result = subprocess.run(
            [file_cmd, "--brief", "--mime-type", str(path)],
            capture_output=True,
            text=True,
            timeout=SNIFF_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        console.print(f"[yellow][MANIFEST] Sniffer failed for {escape(path.name)}: {e}[/yellow]")
        return None

    media_type = result.stdout.strip()
    if result.returncode != 0 or "/" not in media_type:
        return None
    return media_type


def detect_media_type(path: Path) -> str:
    """Resolve a file's media type: extension table, sniffer, then binary default."""
    extension = path.suffix.lower().lstrip(".")
    if extension in MEDIA_TYPES:
        return MEDIA_TYPES[extension]

    return sniff_media_type(path) or DEFAULT_MEDIA_TYPE


def iter_site_files(root: Path):
    """
    Yield (relative_path, absolute_path) for every eligible regular file.

    Excluded directories are pruned during the walk so large
    node_modules trees are never descended into.
    """
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = sorted(
            d
            for d in dirnames
            if not d.startswith(".") and d not in VCS_DIRECTORIES | DEPENDENCY_DIRECTORIES
        )

        for filename in sorted(filenames):
            absolute = current / filename
            if not absolute.is_file():
                continue
            relative = absolute.relative_to(root).as_posix()
            if is_excluded(relative):
                continue
            yield relative, absolute


def build_manifest(root: str | Path) -> Manifest:
    """
    Scan a site directory into a Manifest.

    Args:
        root: Site directory to package

    Returns:
        Manifest with one FileEntry per eligible file

    Raises:
        EmptyManifest: If the directory is missing or nothing survives exclusions
    """
    root = Path(root)
    if not root.is_dir():
        raise EmptyManifest(f"Site directory not found: {root}")

    console.print(f"[cyan][MANIFEST] Scanning {root}[/cyan]")

    entries: dict[str, FileEntry] = {}
    for relative, absolute in iter_site_files(root):
        media_type = detect_media_type(absolute)
        entries[relative] = FileEntry(
            relative_path=relative,
            content=absolute.read_bytes(),
            media_type=media_type,
        )
        console.print(f"[dim][MANIFEST] + {escape(relative)} ({media_type})[/dim]")

    if not entries:
        raise EmptyManifest(f"No deployable files found in {root}")

    manifest = Manifest(entries=entries)
    console.print(
        f"[green][MANIFEST] {len(manifest)} files, {manifest.total_bytes()} bytes[/green]"
    )
    return manifest
