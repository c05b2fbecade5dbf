"""Tests for the background daemon: startup, timers and shutdown."""

import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from vault_backup.config import Config
from vault_backup.daemon import VaultDaemon
from vault_backup.models import FileDiffStat

from tests.fakes import FakeBackend, RecordingObserver


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_daemon(
    vault: Path, backend: FakeBackend, config: Config | None = None
) -> tuple[VaultDaemon, RecordingObserver, FakeClock]:
    observer = RecordingObserver()
    clock = FakeClock()
    daemon = VaultDaemon(
        vault, config or Config(), backend=backend, observer=observer, clock=clock
    )
    return daemon, observer, clock


@pytest.mark.asyncio
async def test_prepare_refuses_to_start_without_git(tmp_path: Path) -> None:
    """Verifies that a missing git installation stops startup with a notice.

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
    """
    daemon, observer, _ = make_daemon(tmp_path, FakeBackend(available=False))

    assert await daemon.prepare() is False
    assert observer.notices == [
        "Git is not installed. Please install git to use Vault Backup."
    ]


@pytest.mark.asyncio
async def test_prepare_initializes_vault_and_syncs_gitignore(tmp_path: Path) -> None:
    """Verifies first-run initialization and the managed .gitignore section.

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
    """
    backend = FakeBackend()
    backend.is_repo = False
    config = Config()
    config.files.ignore = ["*.canvas"]
    daemon, observer, _ = make_daemon(tmp_path, backend, config)

    assert await daemon.prepare() is True

    assert "Git repository initialized" in observer.notices
    assert backend.commits == [("all", "chore: initial commit")]
    assert "*.canvas" in (tmp_path / ".gitignore").read_text().splitlines()


@pytest.mark.asyncio
async def test_prepare_respects_manage_gitignore(tmp_path: Path) -> None:
    config = Config()
    config.files.ignore = ["*.canvas"]
    config.files.manage_gitignore = False
    daemon, _, _ = make_daemon(tmp_path, FakeBackend(), config)

    assert await daemon.prepare() is True
    assert not (tmp_path / ".gitignore").exists()


@pytest.mark.asyncio
async def test_check_idle_waits_for_quiet_period(tmp_path: Path) -> None:
    """Verifies that an idle commit only starts once the idle period has elapsed.

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
    """
    backend = FakeBackend([FileDiffStat.from_counts("a.md", 1, 0)])
    config = Config()
    config.schedule.idle = 60
    daemon, _, clock = make_daemon(tmp_path, backend, config)
    daemon.orchestrator.record_edit(1000.0)

    clock.now = 1030.0
    assert daemon.check_idle() is False

    clock.now = 1060.0
    assert daemon.check_idle() is True
    await daemon.tasks.wait(1)

    assert backend.commits == [("all", "chore: update a.md")]


@pytest.mark.asyncio
async def test_check_idle_skips_while_committing(tmp_path: Path) -> None:
    daemon, _, clock = make_daemon(tmp_path, FakeBackend())
    clock.now = 10_000.0
    daemon.orchestrator.commit_in_progress = True

    assert daemon.check_idle() is False


@pytest.mark.asyncio
async def test_timers_follow_schedule(tmp_path: Path) -> None:
    """Verifies that only the enabled timers are started, and both stop together.

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
    """
    config = Config()
    config.schedule.enable_interval_commit = False
    config.schedule.enable_idle_commit = False
    daemon, _, _ = make_daemon(tmp_path, FakeBackend(), config)

    daemon.start_timers()
    assert not daemon.timers_running

    config.schedule.enable_idle_commit = True
    daemon.start_timers()
    assert daemon.timers_running

    daemon.stop_timers()
    await asyncio.sleep(0)
    assert not daemon.timers_running


@pytest.mark.asyncio
async def test_interval_timer_commits_without_overlap(tmp_path: Path) -> None:
    """Verifies that interval ticks during a slow commit do not start another one.

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
    """
    backend = FakeBackend([FileDiffStat.from_counts("a.md", 1, 0)])
    backend.gate = asyncio.Event()
    config = Config()
    config.schedule.interval = 0.01  # type: ignore[assignment]
    daemon, _, _ = make_daemon(tmp_path, backend, config)

    daemon.start(watch=False)
    await asyncio.sleep(0.1)

    assert backend.diff_calls == 1

    backend.gate.set()
    await daemon.stop()

    assert not daemon.timers_running
    assert backend.commits


@pytest.mark.asyncio
async def test_run_writes_and_removes_pid_file(
    tmp_path: Path, mocker: MagicMock
) -> None:
    """Verifies the PID file lifecycle around a daemon run.

    Args:
        tmp_path (Path): Pytest fixture for a temporary directory.
        mocker (MagicMock): Pytest fixture for mocking.
    """
    (tmp_path / ".git").mkdir()

    async def fake_watch(*_args: object) -> None:
        await asyncio.sleep(3600)

    mocker.patch("vault_backup.daemon.watch_vault", side_effect=fake_watch)
    mocker.patch.object(VaultDaemon, "_install_signal_handlers")
    config = Config()
    config.schedule.enable_interval_commit = False
    daemon, _, _ = make_daemon(tmp_path, FakeBackend(), config)
    pid_file = tmp_path / ".git" / "vault-backup.pid"

    run_task = asyncio.create_task(daemon.run())
    await asyncio.sleep(0.01)
    assert pid_file.exists()

    daemon.request_stop()
    assert await run_task == 0
    assert not pid_file.exists()


@pytest.mark.asyncio
async def test_reload_config_restarts_timers(tmp_path: Path, mocker: MagicMock) -> None:
    fresh = Config()
    fresh.schedule.enable_interval_commit = False
    fresh.schedule.enable_idle_commit = True
    fresh.files.manage_gitignore = False
    mocker.patch("vault_backup.daemon.Config.load", return_value=fresh)
    daemon, _, _ = make_daemon(tmp_path, FakeBackend())

    daemon.reload_config()

    assert daemon.config is fresh
    assert daemon.orchestrator.config is fresh
    assert daemon._interval_task is None
    assert daemon._idle_task is not None
    daemon.stop_timers()
