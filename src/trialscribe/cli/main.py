#!/usr/bin/env python3
"""
Main CLI dispatcher for trialscribe commands.

This module routes subcommands to their respective handlers.
"""

import argparse
import sys
from typing import NoReturn

import dotenv

from trialscribe.config import Settings

dotenv.load_dotenv()


def show_help() -> None:
    """Show the main help message."""
    print("trialscribe - transcript to clinical trial matching")
    print("=" * 40)
    print()
    print("Commands:")
    print("  serve                    - Run the HTTP API (POST /trials)")
    print("  serve --port 9000        - Run on another port (default: 8000)")
    print("  client                   - Interactive terminal client")
    print("  client --sample          - Submit the first sample transcript and exit")
    print("  client --transcript-file notes.txt - Submit a transcript file and exit")
    print("  help                     - Show this message")
    print()
    print("Environment:")
    print("  OPENAI_API_KEY           - Language model credentials (required for extraction)")
    print("  TRIALSCRIBE_MODEL        - Chat model name (default: gpt-4o-mini)")
    print("  TRIALSCRIBE_API_URL      - API base URL used by the client")
    print()
    print("Usage:")
    print("  trialscribe <command> [options]")


def route_serve(args: list[str]) -> NoReturn:
    import uvicorn

    settings = Settings.from_env()
    parser = argparse.ArgumentParser(prog="trialscribe serve", description="Run the trial matching API.")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1).")
    parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000).")
    parser.add_argument("--reload", action="store_true", help="Reload on code changes.")
    parsed = parser.parse_args(args)

    uvicorn.run(
        "trialscribe.server.webapp:app",
        host=parsed.host,
        port=parsed.port,
        reload=parsed.reload,
        log_level=settings.log_level.lower(),
    )
    sys.exit(0)


def route_client(args: list[str]) -> NoReturn:
    from trialscribe.cli.client import SampleTranscripts, TrialMatchClient, TrialMatchSession, run_once, run_repl
    from trialscribe.logging_setup import setup_logging

    settings = Settings.from_env()
    parser = argparse.ArgumentParser(prog="trialscribe client", description="Terminal client for the trial matching API.")
    parser.add_argument("--base-url", default=settings.api_url, help=f"API base URL (default: {settings.api_url}).")
    parser.add_argument("--timeout", type=float, default=120.0, help="Request timeout in seconds (default: 120).")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--transcript-file", help="Submit the transcript in this file and exit.")
    source.add_argument("--sample", action="store_true", help="Submit the first sample transcript and exit.")
    parsed = parser.parse_args(args)

    setup_logging("WARNING")
    session = TrialMatchSession(TrialMatchClient(parsed.base_url, timeout=parsed.timeout))

    if parsed.transcript_file:
        try:
            with open(parsed.transcript_file, encoding="utf-8") as f:
                transcript = f.read()
        except OSError as e:
            print(f"Could not read {parsed.transcript_file}: {e}", file=sys.stderr)
            sys.exit(2)
        sys.exit(run_once(session, transcript))
    if parsed.sample:
        sys.exit(run_once(session, SampleTranscripts().next()))

    run_repl(session)
    sys.exit(0)


def main() -> NoReturn:
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        show_help()
        sys.exit(1)

    command = sys.argv[1].lower()
    args = sys.argv[2:]

    if command == "serve":
        route_serve(args)
    elif command == "client":
        route_client(args)
    elif command in ("help", "--help", "-h"):
        show_help()
        sys.exit(0)
    else:
        print(f"Unknown command: {command}")
        print()
        show_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
