# -----------------------------------------------------------------------------
# EDGESHIP - COMMAND LINE
# -----------------------------------------------------------------------------
# Responsibility: Expose the deployment pipeline as commands and map failures
# to exit codes. This is the only place that touches the environment.
#
# Commands:
# - deploy [name] [--dir PATH]   Publish a folder at https://<name>.<domain>
# - teardown [name]              Delete the site's Worker script
# - list                         Show deployed sites
# - build [--dir] [--output]     Write the Worker script without deploying
# - preview [--dir] [--port]     Serve the folder locally with edge routing
#
# Exit codes: 0 on success, 1 on any fatal condition.
# -----------------------------------------------------------------------------

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape

from src.core.config import ConfigurationMissing, load_credentials, load_settings
from src.core.identity import InvalidSiteName
from src.core.manifest import EmptyManifest, build_manifest
from src.core.preview import run_preview
from src.core.provisioner import Provisioner, RemoteCallFailed
from src.core.site_server import generate_site_server

# Primary output (URLs, acknowledgements) on stdout
console = Console()
err_console = Console(stderr=True)


def emit(text: str) -> None:
    """Primary output: plain text, never wrapped or styled."""
    console.print(text, markup=False, highlight=False, soft_wrap=True)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="edgeship",
        description="Publish a static folder to a Cloudflare Worker at <name>.<your domain>",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser("deploy", help="Deploy a folder (default: current folder)")
    deploy.add_argument("name", nargs="?", help="Subdomain (default: current folder name)")
    deploy.add_argument("--dir", default=".", help="Folder to publish (default: .)")

    teardown = subparsers.add_parser("teardown", help="Delete a deployed site's Worker")
    teardown.add_argument("name", nargs="?", help="Subdomain (default: current folder name)")

    subparsers.add_parser("list", help="List deployed sites")

    build = subparsers.add_parser("build", help="Generate the Worker script only")
    build.add_argument("--dir", default=".", help="Folder to package (default: .)")
    build.add_argument("--output", "-o", help="Write the script here instead of stdout")

    preview = subparsers.add_parser("preview", help="Serve a folder locally with edge routing")
    preview.add_argument("--dir", default=".", help="Folder to serve (default: .)")
    preview.add_argument("--port", type=int, default=8787, help="Port (default: 8787)")

    return parser


def _provisioner() -> Provisioner:
    """Load configuration before any network call is possible."""
    credentials = load_credentials()
    return Provisioner(credentials, settings=load_settings())


def cmd_deploy(args: argparse.Namespace) -> int:
    report = _provisioner().deploy(args.dir, name=args.name)
    for step in report.plan.steps:
        err_console.print(f"[dim]  {step.step}: {step.outcome.value}[/dim]")
    emit(report.url)
    return 0


def cmd_teardown(args: argparse.Namespace) -> int:
    emit(_provisioner().teardown(args.name))
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    urls = _provisioner().list_sites()
    if not urls:
        emit("Nothing deployed.")
        return 0
    for url in urls:
        emit(url)
    return 0


def cmd_build(args: argparse.Namespace) -> int:
    program = generate_site_server(build_manifest(args.dir))
    if args.output:
        Path(args.output).write_text(program, encoding="utf-8")
        err_console.print(f"[green][BUILD] Wrote {args.output}[/green]")
    else:
        sys.stdout.write(program)
    return 0


def cmd_preview(args: argparse.Namespace) -> int:
    run_preview(build_manifest(args.dir), port=args.port)
    return 0


COMMANDS = {
    "deploy": cmd_deploy,
    "teardown": cmd_teardown,
    "list": cmd_list,
    "build": cmd_build,
    "preview": cmd_preview,
}


def main(argv: list[str] | None = None) -> int:
    """Run one command and return its exit status."""
    load_dotenv(Path.cwd() / ".env")

    args = build_parser().parse_args(argv)

    try:
        return COMMANDS[args.command](args)
    except ConfigurationMissing as e:
        err_console.print(f"[red][CONFIG] {escape(str(e))}[/red]")
    except EmptyManifest as e:
        err_console.print(f"[red][MANIFEST] {escape(str(e))}[/red]")
    except InvalidSiteName as e:
        err_console.print(f"[red][IDENTITY] {escape(str(e))}[/red]")
    except RemoteCallFailed as e:
        err_console.print(f"[red][{e.step.upper()}] {escape(e.message)}[/red]")
    except OSError as e:
        err_console.print(f"[red][ERROR] {escape(str(e))}[/red]")
    return 1


if __name__ == "__main__":
    sys.exit(main())
