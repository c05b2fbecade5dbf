import logging
import subprocess
from pathlib import Path

from .constants import APP_NAME
from .errors import GitError, ToolUnavailableError
from .models import CommitInfo

logger = logging.getLogger(APP_NAME)

_LOG_SEPARATOR = "\x1f"


class GitRepo:
    """A wrapper around the Git command-line interface for a specific vault.

    This class provides methods to execute the Git operations the backup engine needs
    using `subprocess`, abstracting away the command construction and output handling.
    Unlike most wrappers it does not require the directory to be a repository yet, so
    that it can also be used to detect and initialize one.

    Attributes:
        path (Path): The file system path to the vault root.
    """

    def __init__(self, path: Path):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the vault root directory.
        """
        self.path = path

    def _run(
        self,
        args: list[str],
        capture: bool = True,
        env: dict | None = None,
        stdin: str | None = None,
        ok_codes: tuple[int, ...] = (0,),
    ) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            capture (bool, optional):   Whether to capture and return stdout.
                                        Defaults to True.
            env (Optional[dict], optional): Environment variables to pass to the
                                            subprocess. Defaults to None.
            stdin (Optional[str], optional): Text fed to the command's standard input.
            ok_codes (tuple[int, ...], optional): Exit codes treated as success.
                                                  Defaults to (0,).

        Returns:
            str:    The stdout of the command if capture is True (stripped of
                    surrounding newlines), otherwise an empty string.

        Raises:
            ToolUnavailableError: If the git executable cannot be run.
            GitError: If the git command returns an unexpected exit code.
        """
        try:
            res = subprocess.run(
                ["git", *args],
                cwd=self.path,
                capture_output=True,
                text=True,
                check=False,
                env=env,
                input=stdin,
            )
        except FileNotFoundError as e:
            raise ToolUnavailableError(f"Git executable not found: {e}") from e
        except OSError as e:
            raise GitError(f"Git error: {e}", args) from e

        if res.returncode not in ok_codes:
            stderr = (res.stderr or "").strip()
            raise GitError(
                f"Git error: {stderr or f'git {args[0]} exited with {res.returncode}'}",
                args,
                stderr,
            )
        return res.stdout.strip("\n") if capture else ""

    def version(self) -> str:
        """Returns the output of `git --version` (e.g. 'git version 2.43.0')."""
        return self._run(["--version"])

    def is_repository(self) -> bool:
        """Checks whether the vault root lies inside a Git work tree.

        Returns:
            bool: True if git recognizes the directory as a work tree.
        """
        try:
            return self._run(["rev-parse", "--is-inside-work-tree"]) == "true"
        except GitError as e:
            logger.debug(f"Not a git repository ({self.path}): {e}")
            return False

    def init(self) -> None:
        """Creates an empty Git repository at the vault root."""
        self._run(["init"], capture=False)

    def rev_parse(self, rev: str) -> str | None:
        """Resolves a revision (tag, branch, relative ref) to a full SHA-1 hash.

        Args:
            rev (str): The revision to parse (e.g., 'HEAD', 'master').

        Returns:
            Optional[str]:  The full SHA-1 hash,
                            or None if the revision could not be resolved.
        """
        try:
            return self._run(["rev-parse", "--verify", "--quiet", rev])
        except GitError as e:
            logger.debug(f"rev-parse failed for '{rev}': {e}")
            return None

    def has_commits(self) -> bool:
        """Returns True once the repository has at least one commit."""
        return self.rev_parse("HEAD") is not None

    def status_porcelain(self, path: str | None = None) -> list[str]:
        """Returns the porcelain (machine-readable) status of the repository.

        Args:
            path (Optional[str], optional): A specific path to check status for.
                                            Defaults to None.

        Returns:
            list[str]: A list of status lines returned by `git status --porcelain`.
        """
        cmd = ["status", "--porcelain"]
        if path:
            cmd.extend(["--", path])
        output = self._run(cmd)
        return output.splitlines() if output else []

    def diff_numstat(self, target: str = "HEAD") -> list[tuple[str, str, str]]:
        """Lists per-file line counts between a revision and the working tree.

        Renames are reported as a deletion plus an addition, and paths are read
        NUL-terminated so that unusual file names survive unquoted.

        Args:
            target (str, optional): The revision to compare against. Defaults to HEAD.

        Returns:
            list[tuple[str, str, str]]: (added, deleted, path) triples. Binary files
                                        report '-' for both counts.
        """
        output = self._run(["diff", "--numstat", "-z", "--no-renames", target])
        entries = []
        for record in output.split("\0"):
            if not record.strip():
                continue
            added, deleted, path = record.split("\t", 2)
            entries.append((added.strip(), deleted, path))
        return entries

    def get_untracked_files(self) -> list[str]:
        """Lists files that are not tracked by git and are not ignored.

        Returns:
            list[str]: A list of untracked file paths.
        """
        output = self._run(["ls-files", "-z", "--others", "--exclude-standard"])
        return [p for p in output.split("\0") if p]

    def get_cached_files(self) -> list[str]:
        """Lists files currently present in the index.

        Returns:
            list[str]: A list of staged file paths.
        """
        output = self._run(["ls-files", "-z", "--cached"])
        return [p for p in output.split("\0") if p]

    def check_ignore(self, paths: list[str]) -> set[str]:
        """Returns the subset of paths matched by the repository's ignore rules.

        Args:
            paths (list[str]): Candidate paths, relative to the repository root.

        Returns:
            set[str]: The paths git would ignore.
        """
        if not paths:
            return set()
        # Exit code 1 means "nothing ignored", which is not an error.
        output = self._run(
            ["check-ignore", "-z", "--stdin"],
            stdin="\0".join(paths) + "\0",
            ok_codes=(0, 1),
        )
        return {p for p in output.split("\0") if p}

    def add(self, paths: list[str] | None = None) -> None:
        """Stages changes, including deletions and untracked files.

        Args:
            paths (list[str] | None, optional): Limit staging to these paths.
                                                Stages everything when None.
        """
        cmd = ["add", "-A"]
        if paths:
            cmd.extend(["--", *paths])
        self._run(cmd, capture=False)

    def add_all(self) -> None:
        """
        Stages all changes (modified, deleted, and untracked files)
        in the working directory.
        """
        self.add()

    def commit(
        self, message: str, paths: list[str] | None = None, no_verify: bool = False
    ) -> None:
        """Creates a new commit with the provided message.

        Args:
            message (str): The commit message.
            paths (list[str] | None, optional): Restrict the commit to these paths,
                                                leaving other staged changes alone.
            no_verify (bool, optional): Whether to bypass pre-commit hooks
                                        (`--no-verify`). Defaults to False.
        """
        cmd = ["commit", "-m", message]
        if no_verify:
            cmd.append("--no-verify")
        if paths:
            cmd.extend(["--", *paths])
        self._run(cmd, capture=False)

    def last_commit(self) -> CommitInfo | None:
        """Reads metadata of the latest commit on HEAD.

        Returns:
            CommitInfo | None: The commit, or None for a repository without commits.
        """
        if not self.has_commits():
            return None
        fmt = _LOG_SEPARATOR.join(["%H", "%s", "%ci", "%an"])
        output = self._run(["log", "-1", f"--format={fmt}"])
        commit_hash, message, date, author = output.split(_LOG_SEPARATOR, 3)
        return CommitInfo(hash=commit_hash, message=message, date=date, author=author)
