# =============================================================================
# EDGESHIP SITE-SERVER GENERATOR TESTS
# =============================================================================
# Tests for the generated Workers script and its routing policy.
# =============================================================================

import base64
import json
import shutil
import subprocess

import pytest
from pydantic import ValidationError

from conftest import PNG_BYTES
from src.core.manifest import build_manifest
from src.core.site_server import (
    CACHE_CONTROL,
    MANIFEST_CLOSE,
    MANIFEST_OPEN,
    SiteResponse,
    decode_path,
    generate_site_server,
    route_request,
)
from src.domain.models import FileEntry, Manifest


def make_manifest(files: dict[str, tuple[bytes, str]]) -> Manifest:
    return Manifest(
        entries={
            path: FileEntry(relative_path=path, content=content, media_type=media_type)
            for path, (content, media_type) in files.items()
        }
    )


def embedded_entries(program: str) -> dict[str, dict]:
    """Pull the embedded manifest literal back out of a generated script."""
    start = program.index(MANIFEST_OPEN) + len(MANIFEST_OPEN)
    end = program.index(MANIFEST_CLOSE, start)
    return {path: entry for path, entry in json.loads(program[start:end])}


@pytest.fixture
def spa():
    return make_manifest(
        {
            "index.html": (b"<h1>Home</h1>", "text/html"),
            "app.js": (b"console.log(1)", "application/javascript"),
            "img/logo.png": (PNG_BYTES, "image/png"),
        }
    )


@pytest.fixture
def no_index():
    return make_manifest({"app.js": (b"1", "application/javascript")})


class TestGenerateSiteServer:
    """Test generate_site_server."""

    def test_program_structure(self, spa):
        """The script registers a single fetch listener and embeds a Map."""
        program = generate_site_server(spa)
        assert program.count('addEventListener("fetch"') == 1
        assert MANIFEST_OPEN in program
        assert "import " not in program
        assert "require(" not in program

    def test_embedded_round_trip(self, site_dir):
        """Every file comes back with its exact bytes and media type."""
        manifest = build_manifest(site_dir)
        embedded = embedded_entries(generate_site_server(manifest))

        assert sorted(embedded) == manifest.paths()
        for path in manifest.paths():
            entry = manifest.get(path)
            assert base64.b64decode(embedded[path]["body"]) == entry.content
            assert embedded[path]["type"] == entry.media_type

    @pytest.mark.parametrize(
        "content",
        [
            b"\n);\nthrow new Error('escaped');\n",
            b"const MANIFEST = new Map(\n[]\n);\n",
            b"</script><script>alert(1)</script>",
            b"`${globalThis}` */ // \\",
            "   café \U0001f600".encode("utf-8"),
            bytes(range(256)),
        ],
    )
    def test_adversarial_content_round_trip(self, content):
        """File bytes can never break out of the embedded literal."""
        manifest = make_manifest(
            {
                "index.html": (content, "text/html"),
                "payload.bin": (content, "application/octet-stream"),
            }
        )
        program = generate_site_server(manifest)
        embedded = embedded_entries(program)

        assert base64.b64decode(embedded["payload.bin"]["body"]) == content
        assert program.isascii()

    @pytest.mark.parametrize(
        "path",
        ['we"ird.txt', "__proto__", "a\n);\nb.txt", "constructor", " .txt"],
    )
    def test_adversarial_paths(self, path):
        """Odd file names stay plain string keys."""
        manifest = make_manifest({path: (b"x", "text/plain")})
        program = generate_site_server(manifest)
        assert list(embedded_entries(program)) == [path]
        assert program.isascii()


class TestRouteRequest:
    """Test the request routing policy shared with the generated script."""

    def test_exact_match(self, spa):
        """Exact hits return the entry with caching and CORS headers."""
        response = route_request(spa, "/img/logo.png")
        assert response.status == 200
        assert response.body == PNG_BYTES
        assert response.headers == {
            "Content-Type": "image/png",
            "Cache-Control": CACHE_CONTROL,
            "Access-Control-Allow-Origin": "*",
        }

    def test_root_serves_index(self, spa):
        """`/` is the same as `/index.html`."""
        assert route_request(spa, "/").body == route_request(spa, "/index.html").body
        assert route_request(spa, "/").status == 200

    def test_every_path_round_trips(self, site_dir):
        """Each manifest path resolves to its own bytes and media type."""
        manifest = build_manifest(site_dir)
        for path in manifest.paths():
            response = route_request(manifest, "/" + path)
            assert response.status == 200
            assert response.body == manifest.get(path).content
            assert response.headers["Content-Type"] == manifest.get(path).media_type

    def test_spa_fallback(self, spa):
        """Extensionless routes fall back to index.html without CORS."""
        response = route_request(spa, "/about")
        assert response.status == 200
        assert response.body == b"<h1>Home</h1>"
        assert response.headers == {"Content-Type": "text/html", "Cache-Control": CACHE_CONTROL}

    def test_nested_route_fallback(self, spa):
        assert route_request(spa, "/users/42/profile").body == b"<h1>Home</h1>"

    def test_missing_asset_404(self, spa):
        """A dotted path is an asset request and never falls back."""
        response = route_request(spa, "/missing.png")
        assert response.status == 404
        assert b"/missing.png" in response.body
        assert response.headers["Content-Type"] == "text/plain"

    def test_dotted_directory_404(self, spa):
        """Any dot in the key counts, not only in the last segment."""
        assert route_request(spa, "/v1.2/docs").status == 404

    def test_no_index_route_404(self, no_index):
        """Without index.html there is no fallback."""
        assert route_request(no_index, "/about").status == 404
        assert route_request(no_index, "/").status == 404

    def test_missing_asset_404_without_index(self, no_index):
        assert route_request(no_index, "/missing.png").status == 404

    def test_only_one_slash_stripped(self, spa):
        """`//app.js` looks up `/app.js`, which does not exist."""
        assert route_request(spa, "//app.js").status == 404


class TestPercentDecoding:
    """Test request paths are percent-decoded before lookup."""

    @pytest.fixture
    def encoded_names(self):
        return make_manifest(
            {
                "index.html": (b"<h1>Home</h1>", "text/html"),
                "my file.png": (PNG_BYTES, "image/png"),
                "café.css": (b"body{}", "text/css"),
                "100%.txt": (b"full", "text/plain"),
            }
        )

    @pytest.mark.parametrize(
        "raw_path, expected",
        [
            ("/my%20file.png", "my file.png"),
            ("/caf%C3%A9.css", "café.css"),
            ("/caf%c3%a9.css", "café.css"),
            ("/100%25.txt", "100%.txt"),
        ],
    )
    def test_encoded_names_resolve(self, encoded_names, raw_path, expected):
        """Escaped characters find the file stored under its real name."""
        response = route_request(encoded_names, raw_path)
        assert response.status == 200
        assert response.body == encoded_names.get(expected).content

    def test_encoded_spa_route(self, encoded_names):
        assert route_request(encoded_names, "/about%20us").body == b"<h1>Home</h1>"

    @pytest.mark.parametrize(
        "raw_path",
        ["/100%.txt", "/bad%E0%A4%A.txt", "/%C3%28.txt", "/%FF", "/trailing%"],
    )
    def test_malformed_encoding_404(self, encoded_names, raw_path):
        """Escapes the browser-side decoder would reject never fall back."""
        response = route_request(encoded_names, raw_path)
        assert response.status == 404
        assert response.body == f"Not found: {raw_path}".encode()

    def test_decode_path(self):
        assert decode_path("/a%2Fb") == "/a/b"
        assert decode_path("/plain") == "/plain"
        assert decode_path("/%zz") is None


class TestSiteResponse:
    """Test the SiteResponse model."""

    def test_frozen(self, spa):
        response = route_request(spa, "/")
        with pytest.raises(ValidationError):
            response.status = 500

    def test_default_headers(self):
        assert SiteResponse(status=204, body=b"").headers == {}


# =============================================================================
# GENERATED SCRIPT UNDER NODE
# =============================================================================
# Runs the generated program with a minimal stand-in for the Workers runtime
# (a Response class and addEventListener) and compares its answers with
# route_request(). Skipped when node is not installed.
# =============================================================================

WORKER_RUNTIME = """\
class Response {
  constructor(body, init) {
    this.body = body;
    this.status = init.status;
    this.headers = init.headers;
  }
}
let fetchHandler = null;
function addEventListener(type, handler) {
  if (type === "fetch") fetchHandler = handler;
}
"""

WORKER_DRIVER = """
const results = [];
for (const path of JSON.parse(process.argv[2])) {
  let response = null;
  fetchHandler({
    request: { url: "https://site.example.com" + path },
    respondWith(r) { response = r; },
  });
  const body = typeof response.body === "string"
    ? Buffer.from(response.body, "utf8")
    : Buffer.from(response.body);
  results.push({
    status: response.status,
    headers: response.headers,
    body: body.toString("base64"),
  });
}
process.stdout.write(JSON.stringify(results));
"""


def run_worker(program: str, paths: list[str], tmp_path) -> list[SiteResponse]:
    script = tmp_path / "worker.js"
    script.write_text(WORKER_RUNTIME + program + WORKER_DRIVER)
    result = subprocess.run(
        ["node", str(script), json.dumps(paths)],
        capture_output=True,
        text=True,
        timeout=60,
    )
    assert result.returncode == 0, result.stderr
    return [
        SiteResponse(
            status=item["status"],
            body=base64.b64decode(item["body"]),
            headers=item["headers"],
        )
        for item in json.loads(result.stdout)
    ]


@pytest.mark.skipif(shutil.which("node") is None, reason="node is not installed")
class TestGeneratedScriptExecution:
    """Test the generated script answers the way route_request() does."""

    @pytest.fixture
    def site(self):
        return make_manifest(
            {
                "index.html": (b"<h1>Home</h1>", "text/html"),
                "app.js": (b"console.log(1)", "application/javascript"),
                "img/logo.png": (PNG_BYTES, "image/png"),
                "my file.png": (bytes(range(256)), "image/png"),
                "café.css": ("body{content:'é'}".encode("utf-8"), "text/css"),
                "__proto__": (b"proto", "text/plain"),
            }
        )

    def test_matches_route_request(self, site, tmp_path):
        """Status, headers and bytes agree for every routing branch."""
        paths = [
            "/",
            "/index.html",
            "/app.js",
            "/img/logo.png",
            "/about",
            "/users/42/profile",
            "/missing.png",
            "/v1.2/docs",
            "//app.js",
            "/my%20file.png",
            "/caf%C3%A9.css",
            "/__proto__",
            "/bad%E0%A4%A.txt",
            "/%C3%28",
        ]
        answers = run_worker(generate_site_server(site), paths, tmp_path)

        for path, answer in zip(paths, answers):
            assert answer == route_request(site, path), path

    def test_binary_bytes_exact(self, site, tmp_path):
        """Every byte value survives the embedded base64 round trip."""
        [answer] = run_worker(generate_site_server(site), ["/my%20file.png"], tmp_path)
        assert answer.status == 200
        assert answer.body == bytes(range(256))

    def test_adversarial_content_executes(self, tmp_path):
        """Content that looks like script text stays inert data."""
        payload = b"\n);\nthrow new Error('escaped');\n`${1}`</script>"
        manifest = make_manifest({"index.html": (payload, "text/html")})
        [answer] = run_worker(generate_site_server(manifest), ["/"], tmp_path)
        assert answer.body == payload

    def test_no_index_404(self, tmp_path):
        manifest = make_manifest({"app.js": (b"1", "application/javascript")})
        answers = run_worker(generate_site_server(manifest), ["/", "/about"], tmp_path)
        assert [answer.status for answer in answers] == [404, 404]
        assert answers[0].body == b"Not found: /index.html"
