"""Exception hierarchy for Vault Backup.

Every failure raised by the Git layer derives from `VaultBackupError`, which itself
subclasses `RuntimeError` so callers that only know about generic Git failures keep
working.
"""


class VaultBackupError(RuntimeError):
    """Base class for all errors raised by Vault Backup."""


class ToolUnavailableError(VaultBackupError):
    """The `git` executable could not be found or executed."""


class GitError(VaultBackupError):
    """A git command exited with a non-zero status.

    Attributes:
        args_list (list[str]): The git arguments that failed.
        stderr (str): The captured standard error of the command.
    """

    def __init__(
        self, message: str, args_list: list[str] | None = None, stderr: str = ""
    ):
        super().__init__(message)
        self.args_list = args_list or []
        self.stderr = stderr


class RepositoryError(VaultBackupError):
    """Querying or initializing the repository failed."""


class CommitError(VaultBackupError):
    """Staging or committing files failed.

    The message always carries the underlying git error text.
    """
