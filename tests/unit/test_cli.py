"""Test suite for CLI functionality."""
from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from murmur import cli
from murmur.cli import create_parser, main
from murmur.config import Config
from murmur.models import TranscriptionResult
from murmur.ui import ConsoleManager
from murmur.utils.logging_factory import LoggingFactory
from murmur.utils.rate_limit import RateLimiter
from tests.helpers import FakeRemoteClient


class CheckableClient(FakeRemoteClient):
    """Fake client that also answers the connectivity check."""

    def __init__(self, connected: bool = True, **kwargs) -> None:
        super().__init__(**kwargs)
        self.connected = connected
        self.rate_limiter = RateLimiter(10, 60.0)

    async def test_connection(self) -> bool:
        return self.connected


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        environment="test",
        OPENAI_API_KEY="sk-test",
        temp_dir=tmp_path / "scratch",
        progress_interval=0.01,
    )


@pytest.fixture
def client(monkeypatch) -> CheckableClient:
    """Route every ``build_client`` call in the CLI to one fake client."""
    fake = CheckableClient()
    monkeypatch.setattr(cli, "build_client", lambda config: fake)
    return fake


@pytest.fixture
def restore_logging():
    """Undo the root logger changes ``main`` makes."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    LoggingFactory.reset()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestCLIParser:
    """Test CLI argument parsing."""

    def test_parser_creation(self):
        """Test that parser is created successfully."""
        parser = create_parser()
        assert parser.prog == "murmur"

    def test_version_argument(self):
        """Test --version argument."""
        with pytest.raises(SystemExit) as exc_info:
            create_parser().parse_args(["--version"])

        assert exc_info.value.code == 0

    def test_transcribe_command_parsing(self):
        """Test transcribe subcommand defaults."""
        args = create_parser().parse_args(["transcribe", "memo.webm"])

        assert args.command == "transcribe"
        assert args.audio_file == "memo.webm"
        assert args.output is None
        assert args.language is None
        assert args.response_format is None

    def test_transcribe_command_with_options(self):
        args = create_parser().parse_args(
            ["-v", "transcribe", "memo.webm", "-l", "ja", "-t", "0.3", "-f", "text", "-o", "out.txt"]
        )

        assert args.verbose is True
        assert args.language == "ja"
        assert args.temperature == 0.3
        assert args.response_format == "text"
        assert args.output == "out.txt"

    def test_invalid_language_choice(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["transcribe", "memo.webm", "--language", "fr"])

    def test_format_command_parsing(self):
        args = create_parser().parse_args(
            ["format", "memo.txt", "-m", "gpt-4o-mini", "--max-tokens", "100"]
        )

        assert args.text_file == "memo.txt"
        assert args.model == "gpt-4o-mini"
        assert args.max_tokens == 100

    def test_command_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])


class TestCLITranscribeCommand:
    """Test transcribe command execution."""

    def test_transcribe_command_success(self, config, client, audio_file: Path, capsys):
        """Transcript lands next to the recording and the summary is JSON on stdout."""
        args = create_parser().parse_args(["transcribe", str(audio_file), "-l", "en"])
        console = ConsoleManager(json_output=True)

        assert cli.transcribe_command(args, console, config) == 0

        output = audio_file.parent / "memo_transcript.txt"
        assert output.read_text(encoding="utf-8") == "hello world"
        summary = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
        assert summary["type"] == "summary"
        assert summary["results"]["characters"] == len("hello world")
        assert client.closed is True

    def test_transcribe_command_progress_events(self, config, client, audio_file: Path, capsys):
        args = create_parser().parse_args(["transcribe", str(audio_file)])

        cli.transcribe_command(args, ConsoleManager(json_output=True), config)

        lines = [
            json.loads(line) for line in capsys.readouterr().err.splitlines() if line.startswith("{")
        ]
        progress = [line for line in lines if line.get("type") == "progress"]
        assert progress[0]["stage"] == "preparing"
        assert progress[-1]["stage"] == "complete"
        assert progress[-1]["progress"] == 100

    def test_transcribe_command_custom_output(self, config, client, audio_file: Path, tmp_path):
        target = tmp_path / "out" / "memo.txt"
        args = create_parser().parse_args(["transcribe", str(audio_file), "-o", str(target)])

        assert cli.transcribe_command(args, ConsoleManager(json_output=True), config) == 0
        assert target.read_text(encoding="utf-8") == "hello world"

    def test_transcribe_command_input_not_found(self, config, client, tmp_path: Path, capsys):
        """Test transcribe command with a missing recording."""
        missing = tmp_path / "missing.webm"
        args = create_parser().parse_args(["transcribe", str(missing)])

        assert cli.transcribe_command(args, ConsoleManager(json_output=True), config) == 1

        assert "Audio file not found" in capsys.readouterr().err
        assert not (tmp_path / "missing_transcript.txt").exists()

    def test_transcribe_command_failure(self, config, client, audio_file: Path):
        client.result = TranscriptionResult.failure("Invalid file format.")
        args = create_parser().parse_args(["transcribe", str(audio_file)])

        assert cli.transcribe_command(args, ConsoleManager(json_output=True), config) == 1

    def test_transcribe_command_missing_api_key(self, tmp_path: Path, audio_file: Path, capsys):
        """Without a key the real factory refuses to build a client."""
        config = Config(environment="test", OPENAI_API_KEY=None, temp_dir=tmp_path / "scratch")
        args = create_parser().parse_args(["transcribe", str(audio_file)])

        assert cli.transcribe_command(args, ConsoleManager(json_output=True), config) == 1
        assert "OPENAI_API_KEY" in capsys.readouterr().err


class TestCLIFormatCommand:
    """Test format command execution."""

    def test_format_command_success(self, config, client, tmp_path: Path):
        transcript = tmp_path / "memo.txt"
        transcript.write_text("raw words", encoding="utf-8")
        args = create_parser().parse_args(["format", str(transcript)])

        assert cli.format_command(args, ConsoleManager(json_output=True), config) == 0
        assert (tmp_path / "memo_note.md").read_text(encoding="utf-8") == "# Note\n\nraw words"

    def test_format_command_missing_input(self, config, client, tmp_path: Path, capsys):
        args = create_parser().parse_args(["format", str(tmp_path / "nope.txt")])

        assert cli.format_command(args, ConsoleManager(json_output=True), config) == 1
        assert "Failed to read input" in capsys.readouterr().err

    def test_format_command_invalid_temperature(self, config, client, tmp_path: Path):
        transcript = tmp_path / "memo.txt"
        transcript.write_text("raw", encoding="utf-8")
        args = create_parser().parse_args(["format", str(transcript), "-t", "5"])

        assert cli.format_command(args, ConsoleManager(json_output=True), config) == 1


class TestCLIMain:
    """Test the entry point end to end."""

    def test_check_command(self, config, client, monkeypatch, capsys, restore_logging):
        monkeypatch.setattr(cli, "get_config", lambda: config)

        assert main(["--json-output", "check"]) == 0

        summary = json.loads(capsys.readouterr().out.strip())
        assert summary["results"]["api"] == "reachable"

    def test_check_command_unreachable(self, config, client, monkeypatch, restore_logging):
        client.connected = False
        monkeypatch.setattr(cli, "get_config", lambda: config)

        assert main(["--json-output", "check"]) == 1

    def test_invalid_configuration(self, monkeypatch, capsys, restore_logging):
        def broken_config():
            raise ValueError("Invalid integer value for MAX_CONCURRENT_JOBS='x'")

        monkeypatch.setattr(cli, "get_config", broken_config)

        assert main(["--json-output", "check"]) == 1
        assert "Invalid configuration" in capsys.readouterr().err

    def test_keyboard_interrupt_handling(self, config, monkeypatch, restore_logging):
        def interrupted(args, console_manager, config):
            raise KeyboardInterrupt

        monkeypatch.setattr(cli, "get_config", lambda: config)
        monkeypatch.setattr(cli, "check_command", interrupted)

        assert main(["check"]) == 1
