"""Command-line front end for voice-memo transcription and note formatting.

Commands:
    transcribe  Transcribe a recording through the job orchestrator
    format      Turn a transcript into a structured Markdown note
    check       Verify API connectivity and show effective settings
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .config import Config, build_client, build_orchestrator, get_config
from .models import FormatOptions, TranscriptionOptions
from .ui.console import ConsoleManager
from .utils.logging_factory import LoggingFactory

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser.

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(
        prog="murmur",
        description="Transcribe voice memos with Whisper and format them into notes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Examples:
  # Transcribe a recording
  murmur transcribe memo.webm --language en

  # Transcribe and write the transcript to a specific file
  murmur transcribe memo.webm -o memo.txt

  # Format an existing transcript into a Markdown note
  murmur format memo.txt -o memo.md

  # Check API connectivity and configuration
  murmur check

Configuration is read from the environment or a .env file (OPENAI_API_KEY,
RATE_LIMIT_MAX_REQUESTS, MAX_CONCURRENT_JOBS, ...).
        """,
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    parser.add_argument(
        "--json-output",
        action="store_true",
        help="Emit machine-readable JSON events to stderr/stdout",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands", required=True)

    transcribe_parser = subparsers.add_parser(
        "transcribe",
        help="Transcribe an audio file",
        description="Transcribe an audio file with the Whisper API, showing progress",
    )
    transcribe_parser.add_argument("audio_file", help="Input audio file path")
    transcribe_parser.add_argument(
        "--output", "-o", help="Output transcript file path (default: <audio>_transcript.txt)"
    )
    transcribe_parser.add_argument(
        "--language", "-l", choices=["ja", "en", "zh"], help="Spoken language hint"
    )
    transcribe_parser.add_argument(
        "--temperature", "-t", type=float, help="Sampling temperature between 0 and 1"
    )
    transcribe_parser.add_argument(
        "--format",
        "-f",
        dest="response_format",
        choices=["json", "text"],
        help="Response format requested from the API (default: json)",
    )

    format_parser = subparsers.add_parser(
        "format",
        help="Format a transcript into a Markdown note",
        description="Send a transcript to the chat API and write the structured note",
    )
    format_parser.add_argument("text_file", help="Transcript text file")
    format_parser.add_argument(
        "--output", "-o", help="Output note path (default: <text_file>_note.md)"
    )
    format_parser.add_argument("--model", "-m", help="Chat model (default: gpt-3.5-turbo)")
    format_parser.add_argument("--temperature", "-t", type=float, help="Sampling temperature")
    format_parser.add_argument("--max-tokens", type=int, help="Maximum tokens in the reply")
    format_parser.add_argument("--prompt-file", help="File holding a custom system prompt")

    subparsers.add_parser(
        "check",
        help="Check API connectivity",
        description="Test the API key and print the effective configuration",
    )

    return parser


def setup_logging(config: Config, console_manager: ConsoleManager, verbose: bool = False) -> None:
    """Route log records through the console manager's handler."""
    LoggingFactory.initialize(
        level="DEBUG" if verbose else config.log_level,
        log_file=config.log_file,
        handlers=[console_manager.logging_handler()],
    )
    if verbose:
        LoggingFactory.configure_verbose(True)


def _write_output(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


async def _run_transcription(
    args: argparse.Namespace, config: Config, console_manager: ConsoleManager
) -> Dict[str, Any]:
    options = TranscriptionOptions(
        language=args.language,
        temperature=args.temperature,
        response_format=args.response_format,
    )
    client = build_client(config)
    try:
        async with build_orchestrator(config, client) as orchestrator:
            with console_manager.progress_context(Path(args.audio_file).name) as tracker:
                unsubscribe = orchestrator.subscribe(tracker)
                try:
                    result = await orchestrator.process_job(args.audio_file, options)
                finally:
                    unsubscribe()
            stats = orchestrator.get_cache_stats()
    finally:
        await client.aclose()

    return {"result": result, "cache": stats}


def transcribe_command(
    args: argparse.Namespace,
    console_manager: ConsoleManager,
    config: Optional[Config] = None,
) -> int:
    """Handle the transcribe subcommand.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    config = config or get_config()
    input_path = Path(args.audio_file)
    output_path = (
        Path(args.output)
        if args.output
        else input_path.parent / f"{input_path.stem}_transcript.txt"
    )

    try:
        console_manager.print_stage("Transcription", "starting")
        outcome = asyncio.run(_run_transcription(args, config, console_manager))
    except ValueError as e:
        console_manager.print_error(str(e))
        return 1

    result = outcome["result"]
    if not result.success:
        console_manager.print_stage("Transcription", "error")
        console_manager.print_error(result.error or "Transcription failed")
        return 1

    try:
        _write_output(output_path, result.text or "")
    except OSError as e:
        console_manager.print_error(f"Failed to write transcript: {e}")
        return 1

    console_manager.print_stage("Transcription", "complete")
    console_manager.print_summary(
        "Transcription Summary",
        {
            "input": str(input_path),
            "output": str(output_path),
            "characters": len(result.text or ""),
            "duration": result.duration,
        },
    )
    return 0


async def _run_formatting(text: str, options: FormatOptions, config: Config) -> Any:
    client = build_client(config)
    try:
        return await client.format_text(text, options)
    finally:
        await client.aclose()


def format_command(
    args: argparse.Namespace,
    console_manager: ConsoleManager,
    config: Optional[Config] = None,
) -> int:
    """Handle the format subcommand.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    config = config or get_config()
    text_path = Path(args.text_file)
    output_path = (
        Path(args.output) if args.output else text_path.parent / f"{text_path.stem}_note.md"
    )

    try:
        text = text_path.read_text(encoding="utf-8")
        prompt = Path(args.prompt_file).read_text(encoding="utf-8") if args.prompt_file else None
        options = FormatOptions(
            prompt=prompt,
            model=args.model,
            temperature=args.temperature,
            max_tokens=args.max_tokens,
        )
    except OSError as e:
        console_manager.print_error(f"Failed to read input: {e}")
        return 1
    except ValueError as e:
        console_manager.print_error(str(e))
        return 1

    try:
        console_manager.print_stage("Formatting", "starting")
        result = asyncio.run(_run_formatting(text, options, config))
    except ValueError as e:
        console_manager.print_error(str(e))
        return 1

    if not result.success:
        console_manager.print_stage("Formatting", "error")
        console_manager.print_error(result.error or "Formatting failed")
        return 1

    try:
        _write_output(output_path, result.formatted_text or "")
    except OSError as e:
        console_manager.print_error(f"Failed to write note: {e}")
        return 1

    console_manager.print_stage("Formatting", "complete")
    usage = result.usage or {}
    console_manager.print_summary(
        "Formatting Summary",
        {
            "input": str(text_path),
            "output": str(output_path),
            "model": result.model,
            "total_tokens": usage.get("total_tokens"),
        },
    )
    return 0


async def _run_check(config: Config) -> Dict[str, Any]:
    client = build_client(config)
    try:
        connected = await client.test_connection()
        return {"connected": connected, "rate_limit": client.rate_limiter.get_status()}
    finally:
        await client.aclose()


def check_command(
    args: argparse.Namespace,
    console_manager: ConsoleManager,
    config: Optional[Config] = None,
) -> int:
    """Handle the check subcommand.

    Returns:
        Exit code (0 when the API answers, 1 otherwise)
    """
    config = config or get_config()
    try:
        outcome = asyncio.run(_run_check(config))
    except ValueError as e:
        console_manager.print_error(str(e))
        return 1

    summary = {
        "api": "reachable" if outcome["connected"] else "unreachable",
        "base_url": config.openai_base_url,
        "rate_limit": (
            f"{outcome['rate_limit']['max_calls']} calls / "
            f"{outcome['rate_limit']['window_seconds']}s"
        ),
        "max_concurrent_jobs": config.max_concurrent_jobs,
        "environment": config.environment,
    }
    console_manager.print_summary("Connection Check", summary)
    return 0 if outcome["connected"] else 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    console_manager = ConsoleManager(verbose=args.verbose, json_output=args.json_output)

    try:
        config = get_config()
    except ValueError as e:
        console_manager.print_error(f"Invalid configuration: {e}")
        return 1

    setup_logging(config, console_manager, args.verbose)
    logger.debug(f"Effective configuration: {config!r}")

    handlers = {
        "transcribe": transcribe_command,
        "format": format_command,
        "check": check_command,
    }

    try:
        return handlers[args.command](args, console_manager, config)
    except KeyboardInterrupt:
        logger.error("Operation cancelled by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
