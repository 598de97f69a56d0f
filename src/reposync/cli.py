import argparse
import asyncio
import logging
import signal
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
)
from rich.table import Table

from . import __version__, engine
from .config import Config, parse_time
from .constants import APP_NAME, EXIT_FATAL, EXIT_OK, EXIT_SYNC_FAILURES
from .errors import ReposyncError
from .executor import ConcurrentExecutor
from .models import SyncAction, SyncOutcome, SyncPlan
from .summary import SyncSummary

logger = logging.getLogger(APP_NAME)
console = Console()
err_console = Console(stderr=True)


def setup_logging(
    verbose: bool, log_file: Path | None = None, max_bytes: int = 5 * 1024 * 1024
) -> None:
    """Configures the logging subsystem.

    Args:
        verbose (bool): If True, DEBUG records are written to stderr. Otherwise
                        only warnings and errors are.
        log_file (Path | None): If set, INFO and above are also written to this
                                file with rotation enabled.
        max_bytes (int): Rotation threshold for the log file.
    """
    formatter = logging.Formatter(
        "[%(asctime)s] %(levelname)s: %(message)s", "%Y-%m-%d %H:%M:%S"
    )

    logger.handlers.clear()
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=max_bytes,
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)


def build_parser() -> argparse.ArgumentParser:
    """Builds the argument parser. Unset flags fall back to config and environment."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Keep a directory of team repositories up to date: "
        "pull the ones you have, clone the ones you don't.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )

    remote = parser.add_argument_group("remote")
    remote.add_argument(
        "-u",
        "--github-team-repo-url",
        help="Team repository listing, e.g. https://api.github.com/organizations/"
        "<org_id>/team/<team_id>/repos [env: GITHUB_TEAM_REPO_URL]",
    )
    remote.add_argument(
        "-t",
        "--github-token",
        help="Token allowed to list the team repositories [env: GITHUB_TOKEN]",
    )
    remote.add_argument(
        "-p",
        "--github-team-prefix",
        help="Only sync repositories starting with this prefix, e.g. 'team_' "
        "[env: GITHUB_TEAM_PREFIX]",
    )
    remote.add_argument(
        "--strip-prefix",
        action="store_true",
        default=None,
        help="Drop the prefix from local directory names",
    )
    remote.add_argument(
        "--include-archived",
        action="store_true",
        default=None,
        help="Sync archived repositories instead of only reporting them",
    )

    local = parser.add_argument_group("local")
    local.add_argument(
        "-d",
        "--repo-root-dir",
        type=Path,
        help="Directory containing all repositories [env: REPO_ROOT_DIR]",
    )
    local.add_argument(
        "-j",
        "--concurrency",
        type=int,
        help="Maximum simultaneous git operations [env: REPOSYNC_CONCURRENCY]",
    )
    local.add_argument(
        "--timeout",
        type=parse_time,
        help="Per-repository git timeout, e.g. 90s or 10m (default: 10m)",
    )
    local.add_argument(
        "--no-offload",
        dest="offload_blocking",
        action="store_false",
        default=None,
        help="Run git inline on the scheduler (serial, for benchmarking)",
    )

    misc = parser.add_argument_group("misc")
    misc.add_argument("--config", type=Path, help="Path to a config.toml")
    misc.add_argument(
        "-n", "--dry-run", action="store_true", help="Show the plan without running git"
    )
    misc.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    misc.add_argument("--log-file", type=Path, help="Also write logs to this file")
    return parser


def load_config(args: argparse.Namespace) -> Config:
    """Loads the layered configuration and applies command-line overrides."""
    config = Config.load(path=args.config)
    config.apply_overrides(
        "github",
        repo_url=args.github_team_repo_url,
        token=args.github_token,
        prefix=args.github_team_prefix,
        strip_prefix=args.strip_prefix,
        include_archived=args.include_archived,
    )
    config.apply_overrides(
        "sync",
        root_dir=args.repo_root_dir,
        concurrency=args.concurrency,
        operation_timeout=args.timeout,
        offload_blocking=args.offload_blocking,
    )
    config.apply_overrides("logging", file=args.log_file)
    config.validate()
    return config


def show_plan(plan: SyncPlan) -> None:
    """Prints the planned actions (dry run)."""
    table = Table(title="Sync Plan", show_header=True, header_style="bold magenta")
    table.add_column("Action", style="cyan")
    table.add_column("Repository")
    table.add_column("Path", style="dim")

    for task in plan.tasks:
        table.add_row(task.action.value, task.name, str(task.target_path))
    for entry in plan.archived:
        table.add_row("archived", entry.name, str(entry.path))

    console.print(table)
    console.print(
        f"{len(plan.pulls)} to pull, {len(plan.clones)} to clone, "
        f"{len(plan.archived)} archived."
    )


def show_report(report: engine.SyncReport) -> None:
    """Prints the run summary followed by per-repository details."""
    summary: SyncSummary = report.summary

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Pulled", justify="right")
    table.add_column("Up to date", justify="right")
    table.add_column("Cloned", justify="right")
    table.add_column("Failed", justify="right")
    table.add_row(
        f"[green]{summary.pulled}[/green]",
        str(summary.pulled - len(summary.updated)),
        f"[green]{summary.cloned}[/green]",
        f"[red]{summary.failed}[/red]" if summary.failed else "0",
    )
    console.print(table)

    for name in summary.updated:
        console.print(f"[yellow]{name}[/yellow]: updated")

    cloned = sorted(
        t.name for t in report.plan.clones if t.name not in _failed_names(summary)
    )
    for name in cloned:
        console.print(f"[yellow]{name}[/yellow]: cloned")

    for entry in report.plan.archived:
        console.print(f"[yellow]{entry.name}[/yellow]: archived")

    for outcome in summary.failures:
        verb = "pull" if outcome.task.action is SyncAction.PULL else "clone"
        console.print(f"[red]{outcome.name}[/red]: failed to {verb}:")
        for line in (outcome.error_detail or "").splitlines():
            console.print(f"  {line}", highlight=False, markup=False)


def _failed_names(summary: SyncSummary) -> set[str]:
    return {o.name for o in summary.failures}


def _install_stop_handlers(executor: ConcurrentExecutor) -> list[signal.Signals]:
    """Routes SIGINT/SIGTERM to `executor.stop` where the loop supports it."""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, executor.stop)
            installed.append(sig)
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug(f"Signal handler for {sig.name} not supported here.")
    return installed


async def _run(config: Config, progress: Progress) -> engine.SyncReport:
    executor = engine.build_executor(config)
    installed = _install_stop_handlers(executor)
    progress_task = progress.add_task("Listing repositories...", total=None)

    def on_plan(plan: SyncPlan) -> None:
        progress.update(
            progress_task, description="Syncing repositories...", total=len(plan.tasks)
        )

    def on_outcome(outcome: SyncOutcome) -> None:
        progress.advance(progress_task)

    try:
        return await engine.run_sync(
            config, executor=executor, on_plan=on_plan, on_outcome=on_outcome
        )
    finally:
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)


def run(args: argparse.Namespace) -> int:
    """Executes the command described by `args` and returns the exit status."""
    setup_logging(args.verbose)

    try:
        config = load_config(args)
        if config.logging.file:
            setup_logging(args.verbose, config.logging.file, config.logging.max_log_size)

        if args.dry_run:
            with console.status("Planning...", spinner="dots"):
                plan = asyncio.run(engine.make_plan(config))
            show_plan(plan)
            return EXIT_OK

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            console=console,
            transient=True,
        ) as progress:
            report = asyncio.run(_run(config, progress))
    except ReposyncError as e:
        logger.debug(f"Fatal: {e!r}")
        err_console.print(f"[bold red]FATAL:[/bold red] {e.message}")
        return EXIT_FATAL

    show_report(report)
    return EXIT_OK if report.summary.ok else EXIT_SYNC_FAILURES


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the reposync CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)
    sys.exit(run(args))


if __name__ == "__main__":
    main()
