"""Global pytest fixtures and configuration.

This module provides shared fixtures for all tests including:
- A controllable clock for cache and rate-limiter tests
- Sample audio files written to tmp_path
- A scripted remote client standing in for the OpenAI API
- A job orchestrator wired to that client with a private scratch directory
"""
from __future__ import annotations

from pathlib import Path

import pytest

from murmur.orchestration import JobOrchestrator
from tests.helpers import EventCollector, FakeClock, FakeRemoteClient


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def audio_file(tmp_path: Path) -> Path:
    """Small fake recording on disk."""
    path = tmp_path / "memo.webm"
    path.write_bytes(b"\x1aE\xdf\xa3" + b"\x00" * 4096)
    return path


@pytest.fixture
def fake_client() -> FakeRemoteClient:
    return FakeRemoteClient()


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    return tmp_path / "scratch"


@pytest.fixture
def orchestrator(fake_client: FakeRemoteClient, scratch_dir: Path) -> JobOrchestrator:
    return JobOrchestrator(fake_client, temp_dir=scratch_dir, progress_interval=0.01)


@pytest.fixture
def collector(orchestrator: JobOrchestrator) -> EventCollector:
    """Observer subscribed to every job of ``orchestrator``."""
    events = EventCollector()
    orchestrator.subscribe(events)
    return events
