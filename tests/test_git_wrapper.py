from pathlib import Path
from unittest.mock import MagicMock

import pytest

from vault_backup.errors import GitError, ToolUnavailableError
from vault_backup.git_wrapper import GitRepo


def test_run_raises_tool_unavailable_when_git_missing(
    mocker: MagicMock, tmp_path: Path
) -> None:
    """Verifies that a missing git executable is reported distinctly.

    Args:
        mocker (MagicMock): Pytest fixture for mocking.
        tmp_path (Path): Pytest fixture for a temporary directory.
    """
    mocker.patch("subprocess.run", side_effect=FileNotFoundError("git"))

    with pytest.raises(ToolUnavailableError):
        GitRepo(tmp_path).version()


def test_run_raises_git_error_with_stderr(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies that non-zero exits carry the command and its stderr."""
    mocker.patch(
        "subprocess.run",
        return_value=MagicMock(
            returncode=128, stdout="", stderr="fatal: not a git repository\n"
        ),
    )

    with pytest.raises(GitError) as excinfo:
        GitRepo(tmp_path).diff_numstat()

    assert excinfo.value.stderr == "fatal: not a git repository"
    assert excinfo.value.args_list[0] == "diff"
    assert "not a git repository" in str(excinfo.value)


def test_is_repository_false_on_git_error(mocker: MagicMock, tmp_path: Path) -> None:
    repo = GitRepo(tmp_path)
    mocker.patch.object(repo, "_run", side_effect=GitError("Git error: fatal"))

    assert repo.is_repository() is False


def test_diff_numstat_parses_nul_separated_records(
    mocker: MagicMock, tmp_path: Path
) -> None:
    """Verifies numstat parsing, including binary markers and names with spaces."""
    repo = GitRepo(tmp_path)
    mock_run = mocker.patch.object(repo, "_run")
    mock_run.return_value = "3\t1\tnotes/a.md\x00-\t-\timage.png\x000\t7\tdir with space/b.md\x00"

    entries = repo.diff_numstat("HEAD")

    mock_run.assert_called_with(["diff", "--numstat", "-z", "--no-renames", "HEAD"])
    assert entries == [
        ("3", "1", "notes/a.md"),
        ("-", "-", "image.png"),
        ("0", "7", "dir with space/b.md"),
    ]


def test_diff_numstat_empty_output(mocker: MagicMock, tmp_path: Path) -> None:
    repo = GitRepo(tmp_path)
    mocker.patch.object(repo, "_run", return_value="")

    assert repo.diff_numstat() == []


def test_check_ignore_accepts_exit_code_one(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies that 'nothing ignored' is not treated as a failure.

    Args:
        mocker (MagicMock): Pytest fixture for mocking.
        tmp_path (Path): Pytest fixture for a temporary directory.
    """
    mock_run = mocker.patch(
        "subprocess.run", return_value=MagicMock(returncode=1, stdout="", stderr="")
    )

    assert GitRepo(tmp_path).check_ignore(["a.md", "b.md"]) == set()

    _, kwargs = mock_run.call_args
    assert kwargs["input"] == "a.md\x00b.md\x00"


def test_check_ignore_returns_matches(mocker: MagicMock, tmp_path: Path) -> None:
    repo = GitRepo(tmp_path)
    mocker.patch.object(repo, "_run", return_value=".obsidian/cache\x00")

    assert repo.check_ignore([".obsidian/cache", "a.md"]) == {".obsidian/cache"}


def test_check_ignore_skips_git_for_empty_input(
    mocker: MagicMock, tmp_path: Path
) -> None:
    repo = GitRepo(tmp_path)
    mock_run = mocker.patch.object(repo, "_run")

    assert repo.check_ignore([]) == set()
    mock_run.assert_not_called()


def test_add_and_commit_restrict_to_paths(mocker: MagicMock, tmp_path: Path) -> None:
    """Verifies that explicit paths are passed after the double-dash boundary."""
    repo = GitRepo(tmp_path)
    mock_run = mocker.patch.object(repo, "_run")

    repo.add(["a.md", ".env"])
    mock_run.assert_called_with(["add", "-A", "--", "a.md", ".env"], capture=False)

    repo.add()
    mock_run.assert_called_with(["add", "-A"], capture=False)

    repo.commit("chore: update a.md", paths=["a.md"])
    mock_run.assert_called_with(
        ["commit", "-m", "chore: update a.md", "--", "a.md"], capture=False
    )


def test_last_commit_parses_log_output(mocker: MagicMock, tmp_path: Path) -> None:
    repo = GitRepo(tmp_path)
    mocker.patch.object(repo, "has_commits", return_value=True)
    mocker.patch.object(
        repo,
        "_run",
        return_value="abc123\x1fchore: update a.md\x1f2024-05-01 10:00:00 +0000\x1fAda",
    )

    info = repo.last_commit()

    assert info is not None
    assert info.hash == "abc123"
    assert info.message == "chore: update a.md"
    assert info.author == "Ada"


def test_last_commit_none_without_history(mocker: MagicMock, tmp_path: Path) -> None:
    repo = GitRepo(tmp_path)
    mocker.patch.object(repo, "has_commits", return_value=False)

    assert repo.last_commit() is None
