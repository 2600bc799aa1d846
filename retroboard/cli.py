"""
Retroboard CLI - Command-line interface for the server and the archive.

Usage:
    retroboard serve [--host H] [--port P] [--data-dir D]   Run the server
    retroboard list [--data-dir D]                          List archived sessions
    retroboard show <retro_id> [--data-dir D]               Print a session snapshot
    retroboard export <retro_id> [-o FILE] [--data-dir D]   Write a session as CSV
"""

import argparse
import json
import sys

from .config import Settings, setup_logging


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Retroboard - Live sprint retrospectives",
        prog="retroboard",
    )
    parser.add_argument("--data-dir", help="Data directory (overrides RETRO_DATA_DIR)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP and event-stream server")
    serve_parser.add_argument("--host", help="Bind address")
    serve_parser.add_argument("--port", type=int, help="Port")
    serve_parser.add_argument("--log-level", help="Logging level")

    # List command
    subparsers.add_parser("list", help="List archived sessions")

    # Show command
    show_parser = subparsers.add_parser("show", help="Print a session snapshot as JSON")
    show_parser.add_argument("retro_id", help="Session id")

    # Export command
    export_parser = subparsers.add_parser("export", help="Export a session as CSV")
    export_parser.add_argument("retro_id", help="Session id")
    export_parser.add_argument("--output", "-o", help="Output file (default: stdout)")

    args = parser.parse_args(argv)

    settings = Settings.from_env()
    if args.data_dir:
        settings.data_dir = args.data_dir

    if args.command == "serve":
        cmd_serve(args, settings)
    elif args.command == "list":
        cmd_list(args, settings)
    elif args.command == "show":
        cmd_show(args, settings)
    elif args.command == "export":
        cmd_export(args, settings)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_serve(args, settings: Settings):
    """Run the server with uvicorn."""
    import uvicorn
    from .api import create_app

    if args.host:
        settings.host = args.host
    if args.port:
        settings.port = args.port
    if args.log_level:
        settings.log_level = args.log_level.upper()

    setup_logging(settings.log_level)
    app = create_app(settings=settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


def cmd_list(args, settings: Settings):
    """List archived sessions, newest first."""
    from .storage import FileSessionStore

    store = FileSessionStore(settings.data_dir)
    summaries = sorted(store.list_archived(), key=lambda s: s.date, reverse=True)
    if not summaries:
        print("No archived retros.")
        return

    for summary in summaries:
        print(f"{summary.session_id}  {summary.date}  {summary.sprint_name}  ({summary.file})")


def cmd_show(args, settings: Settings):
    """Print the public snapshot of a live or archived session."""
    from .storage import FileSessionStore

    store = FileSessionStore(settings.data_dir)
    session = store.find_by_id(args.retro_id)
    if session is None:
        print(f"Error: Retro not found: {args.retro_id}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(session.public_dict(), indent=2))


def cmd_export(args, settings: Settings):
    """Write the CSV report of a live or archived session."""
    from .storage import FileSessionStore

    store = FileSessionStore(settings.data_dir)
    session = store.find_by_id(args.retro_id)
    if session is None:
        print(f"Error: Retro not found: {args.retro_id}", file=sys.stderr)
        sys.exit(1)

    csv_text = store.render_csv(session)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(csv_text)
        print(f"Wrote {args.output}")
    else:
        print(csv_text)


if __name__ == "__main__":
    main()
