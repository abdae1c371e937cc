"""
Command-line entry point.

    python -m tijarati serve            # JSON-lines bridge on stdin/stdout
    python -m tijarati export out.json  # write a snapshot
    python -m tijarati import in.json   # replace the store with a snapshot
    python -m tijarati clear --yes      # delete everything
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from tijarati.bridge import LoggingNavigation, serve
from tijarati.orchestrator import create_host
from tijarati.errors import TijaratiError


async def _serve(args: argparse.Namespace) -> int:
    navigation = LoggingNavigation()
    host = await create_host(navigation=navigation)
    try:
        await serve(host.dispatcher, stop=navigation.exit_requested)
    finally:
        await host.close()
    return 0


async def _export(args: argparse.Namespace) -> int:
    host = await create_host()
    try:
        snapshot = await host.engine.export_snapshot()
    finally:
        await host.close()
    text = json.dumps(snapshot.to_wire(), ensure_ascii=False, indent=2)
    if args.file == "-":
        sys.stdout.write(text + "\n")
    else:
        Path(args.file).write_text(text, encoding="utf-8")
    print(
        f"Exported {len(snapshot.transactions)} transactions and "
        f"{len(snapshot.partners)} partners",
        file=sys.stderr,
    )
    return 0


async def _import(args: argparse.Namespace) -> int:
    source = sys.stdin.read() if args.file == "-" else Path(args.file).read_text(encoding="utf-8")
    try:
        data = json.loads(source)
    except ValueError as e:
        print(f"Invalid snapshot JSON: {e}", file=sys.stderr)
        return 1
    host = await create_host()
    try:
        result = await host.engine.import_snapshot(data)
    finally:
        await host.close()
    print(
        f"Imported {result.imported_transactions} transactions and "
        f"{result.imported_partners} partners "
        f"(skipped {result.skipped_transactions} + {result.skipped_partners})",
        file=sys.stderr,
    )
    return 0


async def _clear(args: argparse.Namespace) -> int:
    if not args.yes:
        print("Refusing to clear without --yes", file=sys.stderr)
        return 2
    host = await create_host()
    try:
        await host.engine.clear_all()
    finally:
        await host.close()
    print("All transactions and partners deleted", file=sys.stderr)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="tijarati", description="Tijarati host core.")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("serve", help="Serve bridge requests as JSON lines on stdin/stdout")

    export = commands.add_parser("export", help="Write a snapshot of the store")
    export.add_argument("file", help="Output file ('-' for stdout)")

    imp = commands.add_parser("import", help="Replace the store with a snapshot")
    imp.add_argument("file", help="Snapshot file ('-' for stdin)")

    clear = commands.add_parser("clear", help="Delete all transactions and partners")
    clear.add_argument("--yes", action="store_true", help="Confirm the wipe")

    return parser


COMMANDS = {
    "serve": _serve,
    "export": _export,
    "import": _import,
    "clear": _clear,
}


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(COMMANDS[args.command](args))
    except TijaratiError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
