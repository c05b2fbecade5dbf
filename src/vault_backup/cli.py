import argparse
import asyncio
import datetime
import logging
import os
import signal
import subprocess
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from . import daemon, ops, system
from .backend import GitBackend
from .categorize import is_hidden_path
from .config import CONFIG_FILE, Config
from .constants import APP_NAME, LOG_FILE
from .errors import ToolUnavailableError
from .git_wrapper import GitRepo
from .messages import build_commit_message
from .models import GitStatus, status_line
from .orchestrator import CommitOrchestrator

logger = logging.getLogger(APP_NAME)
console = Console()


class ConsoleObserver:
    """Prints orchestrator notices and failures to the terminal."""

    def on_status_change(self, status: GitStatus) -> None:
        logger.debug(status_line(status))

    def on_error(self, error: Exception) -> None:
        logger.debug(f"Git error: {error!r}")

    def notice(self, message: str) -> None:
        console.print(f"[bold blue]{APP_NAME}:[/bold blue] {message}")


def _resolve_vault(path: str | None) -> Path:
    return Path(path).resolve() if path else Path.cwd()


def _require_repository(vault: Path) -> GitRepo:
    repo = GitRepo(vault)
    try:
        is_repo = repo.is_repository()
    except ToolUnavailableError:
        console.print("[bold red]ERROR:[/bold red] Git is not installed.")
        sys.exit(1)
    if not is_repo:
        console.print(
            "[bold red]Not a git repository.[/bold red] "
            "Run [bold cyan]vault-backup init[/bold cyan] first."
        )
        sys.exit(1)
    return repo


def init_vault(vault: Path) -> None:
    """Initializes version control for a vault."""
    backend = GitBackend(vault)
    if not asyncio.run(backend.tool_available()):
        console.print("[bold red]ERROR:[/bold red] Git is not installed.")
        sys.exit(1)

    config = Config.load(vault)
    try:
        created = asyncio.run(ops.initialize_vault(backend, vault))
    except Exception as e:
        console.print(f"[bold red]Failed to initialize git:[/bold red] {e}")
        sys.exit(1)

    if config.files.manage_gitignore:
        ops.sync_gitignore_patterns(vault, config.files.ignore)

    if created:
        console.print(
            f"[bold green]✔ Git repository initialized[/bold green] in [cyan]{vault}[/cyan]"
        )
    else:
        console.print("Already a git repository.", style="dim")


async def _commit_once(vault: Path, config: Config) -> int:
    backend = GitBackend(vault)
    if not await backend.tool_available():
        console.print("[bold red]ERROR:[/bold red] Git is not installed.")
        return 1
    orchestrator = CommitOrchestrator(backend, config, ConsoleObserver())
    await orchestrator.perform_commit("manual")
    return 1 if orchestrator.status.state == "error" else 0


def commit_now(vault: Path) -> None:
    """Commits pending changes, via the running daemon when there is one."""
    _require_repository(vault)

    pid = system.read_daemon_pid(vault)
    if pid is not None and hasattr(signal, "SIGUSR1"):
        os.kill(pid, signal.SIGUSR1)
        console.print(f"Requested a commit from the running daemon (pid {pid}).")
        return

    config = Config.load(vault)
    sys.exit(asyncio.run(_commit_once(vault, config)))


def _commit_age(date: str) -> str:
    try:
        ts = datetime.datetime.strptime(date, "%Y-%m-%d %H:%M:%S %z").timestamp()
    except ValueError:
        return date
    return status_line(GitStatus(last_commit_time=ts))


def show_status(vault: Path) -> None:
    """Displays the daemon state, the last commit and the pending changes."""
    repo = _require_repository(vault)
    config = Config.load(vault)

    pid = system.read_daemon_pid(vault)
    daemon_content = Text()
    daemon_content.append("Daemon: ", style="bold")
    if pid is not None:
        daemon_content.append(f"Active (pid {pid})\n", style="bold green")
    else:
        daemon_content.append("Stopped\n", style="bold red")
    daemon_content.append("Mode:   ", style="bold")
    daemon_content.append(
        f"{config.commit.mode} commits, hidden files: {config.commit.hidden_files}"
    )
    console.print(Panel(daemon_content, title="Vault Backup", expand=False))

    try:
        last = repo.last_commit()
    except Exception as e:
        logger.debug(f"Failed to read last commit: {e}")
        last = None

    repo_content = Text()
    if last:
        repo_content.append(f"{_commit_age(last.date)}\n")
        repo_content.append(f"{last.message}\n", style="dim")
        repo_content.append(f"{last.hash[:10]} by {last.author}", style="dim")
    else:
        repo_content.append("Git: Ready (no commits yet)")
    console.print(Panel(repo_content, title="Last Commit", expand=False))

    try:
        stats = asyncio.run(GitBackend(vault).diff_stats())
    except Exception as e:
        console.print(f"[red]Unable to read pending changes: {e}[/red]")
        return

    if not stats:
        console.print("[green]✔ No pending changes.[/green]")
        return

    table = Table(title=f"Pending Changes ({len(stats)})")
    table.add_column("Path", style="cyan")
    table.add_column("+", style="green", justify="right")
    table.add_column("-", style="red", justify="right")
    table.add_column("Hidden", style="dim")
    for stat in sorted(stats, key=lambda s: s.path):
        table.add_row(
            stat.path,
            str(stat.additions),
            str(stat.deletions),
            "yes" if is_hidden_path(stat.path) else "",
        )
    console.print(table)
    message = build_commit_message(stats, config.commit.max_files)
    console.print(f"[dim]Next batch message: {message}[/dim]")


def open_config() -> None:
    """Opens the global configuration file in the system default editor."""
    if not CONFIG_FILE.exists():
        CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w") as f:
            f.write(
                "# Vault Backup Configuration\n\n"
                "[schedule]\n"
                "# Options: paranoid, balanced, lazy\n"
                '# preset = "balanced"\n\n'
                "[commit]\n"
                '# mode = "batch"\n'
                '# hidden_files = "group"\n'
            )

    editor = os.environ.get("EDITOR")
    if not editor:
        if sys.platform == "darwin":
            editor = "open"
        else:
            editor = "nano"

    console.print(f"Opening [cyan]{CONFIG_FILE}[/cyan]...")

    try:
        subprocess.run([editor, str(CONFIG_FILE)])
    except Exception as e:
        console.print(f"[red]Could not open editor: {e}[/red]")


def show_config_reference() -> None:
    """Displays a formatted table of all available configuration options."""
    table = Table(title="Vault Backup Configuration Schema", show_lines=True)
    table.add_column("Section", style="cyan", justify="right")
    table.add_column("Key", style="green")
    table.add_column("Type", style="dim")
    table.add_column("Default", style="yellow")
    table.add_column("Description")

    # Schedule Settings
    table.add_row(
        "schedule",
        "enable_interval_commit",
        "bool",
        "true",
        "Commit pending changes on a fixed interval.",
    )
    table.add_row(
        "",
        "interval",
        "int | str",
        '"5m"',
        "Time between interval commits (e.g., '5m', '1hr', 300).",
    )
    table.add_row(
        "",
        "enable_idle_commit",
        "bool",
        "false",
        "Commit once the vault has been quiet for the idle period.",
    )
    table.add_row(
        "", "idle", "int | str", '"10m"', "Quiet period before an idle commit."
    )
    table.add_row(
        "",
        "preset",
        "str",
        "None",
        "Schedule preset: 'paranoid', 'balanced', or 'lazy'.",
    )

    # Commit Settings
    table.add_row(
        "commit",
        "max_files",
        "int",
        "5",
        "File names listed in a batch message before 'and N more'.",
    )
    table.add_row(
        "",
        "mode",
        "str",
        '"batch"',
        "'batch' (one commit) or 'individual' (one commit per file).",
    )
    table.add_row(
        "",
        "hidden_files",
        "str",
        '"group"',
        "Dot-files: 'group', 'separate', 'never', or 'gitignore-only'.",
    )

    # Files Settings
    table.add_row(
        "files",
        "ignore",
        "list",
        "[]",
        "Extra patterns kept in a managed section of .gitignore.",
    )
    table.add_row(
        "",
        "manage_gitignore",
        "bool",
        "true",
        "Allow the daemon to write the managed .gitignore section.",
    )

    # Limits / Logging Settings
    table.add_row(
        "limits",
        "max_log_size",
        "int | str",
        '"5mb"',
        "Max size for log files before rotation (e.g., '5mb', '1gb').",
    )
    table.add_row("logging", "debug", "bool", "false", "Log at DEBUG level.")
    table.add_row(
        "", "notify", "bool", "true", "Show desktop notifications for notices."
    )

    console.print(table)


def tail_log() -> None:
    """Follows the daemon log file in real-time."""
    if not LOG_FILE.exists():
        console.print(f"[red]No log file found yet at {LOG_FILE}.[/red]")
        return

    console.print(f"Tailing [bold cyan]{LOG_FILE}[/bold cyan] (Ctrl+C to stop)...")
    try:
        subprocess.run(["tail", "-n", "1000", "-f", str(LOG_FILE)])
    except KeyboardInterrupt:
        console.print("\nStopped.", style="dim")


class VaultHelpFormatter(argparse.HelpFormatter):
    """Custom help formatter that groups the subcommands under headers."""

    def _format_action(self, action: argparse.Action) -> str:
        if isinstance(action, argparse._SubParsersAction):
            parts = []

            groups = {
                "Backup": ["watch", "now", "init"],
                "Inspection": ["status", "log"],
                "Configuration": ["config", "ignore"],
            }

            subactions = list(self._iter_indented_subactions(action))

            for group_name, commands in groups.items():
                group_actions = [a for a in subactions if a.dest in commands]
                if not group_actions:
                    continue

                parts.append(f"\n  {group_name}:\n")

                self._indent()
                for subaction in group_actions:
                    parts.append(self._format_action(subaction))
                self._dedent()

            return self._join_parts(parts)

        return super()._format_action(action)


def build_parser() -> argparse.ArgumentParser:
    """Builds the argument parser for the `vault-backup` command."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        usage=argparse.SUPPRESS,
        formatter_class=VaultHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command")

    watch_parser = subparsers.add_parser(
        "watch", help="Watch a vault and commit changes automatically"
    )
    watch_parser.add_argument("path", nargs="?", help="Vault root (default: cwd)")
    watch_parser.add_argument(
        "--daemon",
        action="store_true",
        help="Log to the rotating log file instead of stdout",
    )

    now_parser = subparsers.add_parser("now", help="Commit pending changes now")
    now_parser.add_argument("path", nargs="?", help="Vault root (default: cwd)")

    init_parser = subparsers.add_parser("init", help="Initialize the vault repository")
    init_parser.add_argument("path", nargs="?", help="Vault root (default: cwd)")

    status_parser = subparsers.add_parser(
        "status", help="Show daemon state and pending changes"
    )
    status_parser.add_argument("path", nargs="?", help="Vault root (default: cwd)")

    subparsers.add_parser("log", help="Tail the daemon log file")

    config_parser = subparsers.add_parser(
        "config", help="Open global config file or view options"
    )
    config_parser.add_argument(
        "--list",
        "-l",
        action="store_true",
        help="List all available configuration options and their descriptions",
    )

    ignore_parser = subparsers.add_parser("ignore", help="Add pattern to .gitignore")
    ignore_parser.add_argument("pattern", help="File pattern (e.g. '*.canvas')")
    ignore_parser.add_argument("--path", help="Vault root (default: cwd)")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the Vault Backup CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    vault = _resolve_vault(getattr(args, "path", None))

    if args.command == "now":
        commit_now(vault)
        return
    elif args.command == "init":
        init_vault(vault)
        return
    elif args.command == "status":
        show_status(vault)
        return
    elif args.command == "log":
        tail_log()
        return
    elif args.command == "ignore":
        _require_repository(vault)
        ops.add_ignore(vault, args.pattern)
        return
    elif args.command == "config":
        if args.list:
            show_config_reference()
        else:
            open_config()
        return

    # Default Action: watch the vault in the foreground.
    interactive = not getattr(args, "daemon", False)
    sys.exit(daemon.main(vault, interactive=interactive))


if __name__ == "__main__":
    main()
