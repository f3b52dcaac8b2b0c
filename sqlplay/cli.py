"""
Command line interface for SQLPlay.

Commands:
- presets: List the presets of a dialect
- show: Print or export a resolved file tree
- run: Run a preset or a local playground and print its events
- serve: Start the HTTP shell

Usage:
    sqlplay presets postgresql
    sqlplay show sqlite --preset starter-01 --output ./starter
    sqlplay run postgresql --preset starter-01 --as-user 1b4e28ba-2fa1-11d2-883f-0016d3cca427 --role authenticated
    sqlplay run sqlite --path ./starter --format json
    sqlplay serve --port 8090

Invariants:
    - A run that ends with an ErrorEvent exits with status 1
    - JSON output is one event per line (NDJSON), in emission order

How to change safely:
    - Add new commands, don't change the output of existing ones
    - Keep logic in PlaygroundService; this module only parses and prints
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Optional

from .access.identity import Identity
from .config import Settings, get_settings, setup_logging
from .errors import PlaygroundError
from .events import ConsoleEvent, ErrorEvent, RunEvent, StatementLogEntry
from .registry.filetree import PlaygroundDocument, dump_document, load_document
from .service import PlaygroundService
from .types import Dialect, FileName, PlaygroundFileTree

logger = logging.getLogger(__name__)


def format_event(event: RunEvent) -> str:
    """Render one event for the terminal."""
    if isinstance(event, StatementLogEntry):
        return f"[{event.file_name or '-'}] SQL  {event.inline()}"
    if isinstance(event, ConsoleEvent):
        return f"[{event.file_name}] {event.text}"
    if isinstance(event, ErrorEvent):
        where = f"{event.file_name}:{event.line}" if event.line else event.file_name
        text = f"[{where}] ERROR {event.message}"
        if event.statement:
            text += f"\n    while executing: {event.statement}"
        return text
    return str(event)


class PlaygroundCLI:
    """CLI commands over a PlaygroundService.

    Example:
        >>> cli = PlaygroundCLI(PlaygroundService())
        >>> print(cli.presets("sqlite"))
        >>> exit_code = asyncio.run(cli.run("sqlite", cli.resolve("sqlite", None)))
    """

    def __init__(self, service: PlaygroundService) -> None:
        self.service = service

    def presets(self, dialect: str, as_json: bool = False) -> str:
        manifests = self.service.presets(dialect)
        if as_json:
            return json.dumps([m.to_dict() for m in manifests], indent=2)
        if not manifests:
            return f"No presets for {dialect}"
        width = max(len(m.id) for m in manifests)
        return "\n".join(f"{m.id.ljust(width)}  {m.name} - {m.description}" for m in manifests)

    def resolve(self, dialect: str, preset_id: Optional[str], path: Optional[str] = None) -> PlaygroundFileTree:
        """File tree from a local playground or from the registry."""
        if path:
            document = load_document(path, dialect=dialect)
            problems = document.validate()
            if problems:
                raise PlaygroundError(
                    f"Invalid playground {path}: {'; '.join(problems)}",
                    code="INVALID_DOCUMENT",
                    details={"problems": problems},
                )
            return self.service.prepare(dialect, document.files)
        return self.service.resolve(dialect, preset_id)

    def show(self, dialect: str, preset_id: Optional[str], output: Optional[str] = None) -> str:
        tree = self.service.resolve(dialect, preset_id)
        if output:
            document = PlaygroundDocument(
                dialect=Dialect.parse(dialect),
                files=tree.without(FileName.INTERNAL),
                name=preset_id or "core",
                preset=preset_id,
            )
            return f"Playground written to {dump_document(document, output)}"

        sections = []
        for name, text in tree.to_dict().items():
            sections.append(f"# --- {name}.py ---\n{text.rstrip()}\n")
        return "\n".join(sections)

    async def run(
        self,
        dialect: str,
        tree: PlaygroundFileTree,
        identity: Optional[Identity] = None,
        as_json: bool = False,
    ) -> int:
        """Run a tree, printing events as they arrive. Returns the exit code."""
        failed = False
        try:
            async for event in self.service.run(dialect, tree, identity):
                failed = failed or isinstance(event, ErrorEvent)
                print(json.dumps(event.to_dict()) if as_json else format_event(event), flush=True)
        finally:
            await self.service.close()
        return 1 if failed else 0


def _identity(args: argparse.Namespace) -> Optional[Identity]:
    if args.as_user is None and args.role is None:
        return None
    return Identity(subject=args.as_user, role=args.role or "authenticated")


def _serve(settings: Settings, host: Optional[str], port: Optional[int], reload: bool) -> None:
    import uvicorn

    uvicorn.run(
        "playground.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="sqlplay", description="SQLPlay playground runner")
    subparsers = parser.add_subparsers(dest="command", required=True)
    dialects = [d.value for d in Dialect]

    # presets command
    presets_parser = subparsers.add_parser("presets", help="List presets of a dialect")
    presets_parser.add_argument("dialect", choices=dialects)
    presets_parser.add_argument("--json", action="store_true", help="Print JSON")

    # show command
    show_parser = subparsers.add_parser("show", help="Print a resolved file tree")
    show_parser.add_argument("dialect", choices=dialects)
    show_parser.add_argument("--preset", "-p", help="Preset id (default: core files)")
    show_parser.add_argument(
        "--output", "-o", help="Write to a directory or a .yaml/.json document instead"
    )

    # run command
    run_parser = subparsers.add_parser("run", help="Run a playground")
    run_parser.add_argument("dialect", choices=dialects)
    source = run_parser.add_mutually_exclusive_group()
    source.add_argument("--preset", "-p", help="Preset id (default: core files)")
    source.add_argument("--path", help="Directory of sources or a .yaml/.json document")
    run_parser.add_argument("--as-user", help="Run index as this subject")
    run_parser.add_argument("--role", help="Role for --as-user (default: authenticated)")
    run_parser.add_argument(
        "--format", choices=["text", "json"], default="text", help="Output format"
    )

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP shell")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    settings = get_settings()
    setup_logging(settings)

    if args.command == "serve":
        _serve(settings, args.host, args.port, args.reload)
        return

    cli = PlaygroundCLI(PlaygroundService(settings))
    try:
        if args.command == "presets":
            print(cli.presets(args.dialect, as_json=args.json))
        elif args.command == "show":
            print(cli.show(args.dialect, args.preset, args.output))
        elif args.command == "run":
            tree = cli.resolve(args.dialect, args.preset, args.path)
            exit_code = asyncio.run(
                cli.run(args.dialect, tree, _identity(args), as_json=args.format == "json")
            )
            sys.exit(exit_code)
    except (PlaygroundError, FileNotFoundError, ValueError) as e:
        message: Any = e.message if isinstance(e, PlaygroundError) else str(e)
        print(f"Error: {message}", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
