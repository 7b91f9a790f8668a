"""
Command-line interface for Bookmark Sift.

Runs the cleanup operations against a Chromium profile's ``Bookmarks`` and
``History`` files, keeping settings, the reachability cache and task state
in a JSON state file.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from tqdm import tqdm

from bookmark_sift import __version__
from bookmark_sift.config.configuration import AppConfig, ConfigurationManager
from bookmark_sift.core.bookmark_store import BookmarkTree
from bookmark_sift.core.duplicate_detector import (
    find_duplicates,
    select_bookmark_to_keep,
)
from bookmark_sift.core.history import ChromiumHistory, HistoryProvider, InMemoryHistory
from bookmark_sift.core.link_checker import LinkChecker
from bookmark_sift.core.notifications import RecordingNotifier
from bookmark_sift.core.service import SiftService
from bookmark_sift.core.staleness import get_stale_bookmarks
from bookmark_sift.core.state_store import JSONFileStateStore
from bookmark_sift.core.task_coordinator import BackgroundTask
from bookmark_sift.core.task_state import (
    CategorizationPhase,
    CategorizationState,
    DeadLinkCheckState,
    TaskState,
)
from bookmark_sift.utils.error_handler import ConfigurationError, SiftError
from bookmark_sift.utils.logging_setup import setup_logging
from bookmark_sift.utils.timeutils import ms_to_datetime

TASK_CHOICES = ("dead-links", "categorization", "all")

# Seconds between status polls while a background task runs
PROGRESS_POLL_INTERVAL = 0.5


def parse_setting(assignment: str) -> Tuple[str, Any]:
    """
    Parse a ``KEY=VALUE`` setting assignment.

    Booleans (``true``/``false``) and integers are converted; anything else
    stays a string.
    """
    if "=" not in assignment:
        raise ValueError(f"Expected KEY=VALUE, got '{assignment}'")
    key, value = assignment.split("=", 1)
    key = key.strip().replace("-", "_")
    value = value.strip()

    if value.lower() in ("true", "yes", "on"):
        return key, True
    if value.lower() in ("false", "no", "off"):
        return key, False
    try:
        return key, int(value)
    except ValueError:
        return key, value


def dead_link_progress(state: DeadLinkCheckState) -> Tuple[str, int, int]:
    return "Checking links", state.checked, state.total


def categorization_progress(state: CategorizationState) -> Tuple[str, int, int]:
    if state.phase == CategorizationPhase.CREATING:
        total = sum(len(c.bookmarks) for c in state.categories)
        return "Copying bookmarks", state.bookmarks_copied, total
    return "Analyzing batches", state.current_batch, state.total_batches


async def wait_with_progress(
    task: BackgroundTask,
    describe: Callable[[Any], Tuple[str, int, int]],
    interval: float = PROGRESS_POLL_INTERVAL,
    disable: Optional[bool] = None,
) -> None:
    """
    Wait for a background task while a progress bar follows its saved state.

    The bar is driven from ``get_status()``, the same persisted progress a
    ``status`` command in another terminal would see. By default it is only
    shown on a terminal.
    """
    with tqdm(total=0, leave=False, disable=disable) as bar:
        while task.is_active:
            label, done, total = describe(await task.get_status())
            bar.set_description(label, refresh=False)
            bar.total = total
            bar.n = done
            bar.refresh()
            await asyncio.sleep(interval)
    await task.wait()


class CLIInterface:
    """Command line interface for bookmark cleanup."""

    def __init__(self):
        self.parser = self._create_parser()
        self.logger = logging.getLogger(__name__)

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create argument parser with one subcommand per operation."""
        parser = argparse.ArgumentParser(
            prog="sift-bookmarks",
            description="Bookmark Sift - health tracking and cleanup for browser bookmarks",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  sift-bookmarks health
  sift-bookmarks --bookmarks ~/.config/chromium/Default/Bookmarks duplicates --remove
  sift-bookmarks check-links
  sift-bookmarks status
  sift-bookmarks categorize --folder "Reorganized"
  sift-bookmarks settings --set stale_threshold_days=365

Configuration:
  Paths, network and logging options can be set in sift_config.toml (see
  --create-config). Cleanup settings are stored in the state file and changed
  with the 'settings' command. The Claude API key may also come from the
  CLAUDE_API_KEY environment variable.

Close the browser before running commands that modify bookmarks.
            """,
        )

        parser.add_argument(
            "--version", "-V", action="version", version=f"%(prog)s {__version__}"
        )
        parser.add_argument(
            "--config", "-c", type=Path, help="Configuration file (TOML or JSON)"
        )
        parser.add_argument(
            "--create-config",
            type=Path,
            metavar="PATH",
            help="Write a sample configuration file and exit",
        )
        parser.add_argument(
            "--bookmarks", "-b", type=Path, help="Chromium 'Bookmarks' file"
        )
        parser.add_argument(
            "--history", type=Path, help="Chromium 'History' database (or a copy)"
        )
        parser.add_argument("--state-file", type=Path, help="JSON state file")
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable debug logging"
        )

        subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

        health = subparsers.add_parser("health", help="Show the collection health score")
        health.add_argument(
            "--live",
            action="store_true",
            help="Check every link over the network instead of using the cache",
        )

        duplicates = subparsers.add_parser("duplicates", help="List duplicate bookmarks")
        duplicates.add_argument(
            "--remove",
            action="store_true",
            help="Delete duplicates, keeping the newest of each group",
        )

        stale = subparsers.add_parser("stale", help="List bookmarks not visited recently")
        stale.add_argument(
            "--delete", action="store_true", help="Delete the stale bookmarks"
        )

        subparsers.add_parser(
            "check-links", help="Run the dead-link check and wait for it to finish"
        )

        subparsers.add_parser("status", help="Show background task status")

        cancel = subparsers.add_parser("cancel", help="Cancel a running task")
        cancel.add_argument("--task", choices=TASK_CHOICES, default="all")

        clear = subparsers.add_parser("clear-results", help="Reset task results")
        clear.add_argument("--task", choices=TASK_CHOICES, default="all")

        categorize = subparsers.add_parser(
            "categorize", help="Copy bookmarks into AI-suggested folders under 'Sift'"
        )
        categorize.add_argument(
            "--folder", help="Output folder name (defaults to today's date)"
        )

        settings = subparsers.add_parser("settings", help="Show or change settings")
        settings.add_argument(
            "--set",
            dest="assignments",
            action="append",
            default=[],
            metavar="KEY=VALUE",
            help="Change a setting (repeatable)",
        )

        return parser

    def parse_args(self, args=None) -> argparse.Namespace:
        return self.parser.parse_args(args)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _load_config(self, args: argparse.Namespace) -> AppConfig:
        config = ConfigurationManager(args.config).config
        if args.bookmarks:
            config.paths.bookmarks_file = args.bookmarks.expanduser()
        if args.history:
            config.paths.history_file = args.history.expanduser()
        if args.state_file:
            config.paths.state_file = args.state_file.expanduser()
        return config

    def _open_history(self, config: AppConfig) -> HistoryProvider:
        if config.paths.history_file:
            return ChromiumHistory(config.paths.history_file)
        self.logger.warning(
            "No history file configured; every bookmark will count as unvisited"
        )
        return InMemoryHistory()

    def _build_service(
        self, config: AppConfig
    ) -> Tuple[SiftService, BookmarkTree, RecordingNotifier]:
        if not config.paths.bookmarks_file:
            raise ConfigurationError(
                "No bookmarks file configured. Use --bookmarks or set "
                "paths.bookmarks_file in the configuration."
            )

        tree = BookmarkTree.load(config.paths.bookmarks_file)
        notifier = RecordingNotifier()
        service = SiftService(
            state_store=JSONFileStateStore(config.paths.state_file),
            bookmark_store=tree,
            history=self._open_history(config),
            link_checker=LinkChecker(
                timeout=config.network.timeout,
                batch_size=config.network.batch_size,
                batch_delay=config.network.batch_delay,
            ),
            notifier=notifier,
            dead_link_batch_size=config.tasks.dead_link_batch_size,
            categorization_batch_size=config.tasks.categorization_batch_size,
        )
        return service, tree, notifier

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _cmd_health(self, service: SiftService, args) -> int:
        if args.live:
            metrics = await service.health.calculate_health_metrics(True)
        else:
            metrics = await service.get_health_metrics()

        print(f"Health score: {metrics.health_score}/100")
        print(f"  Bookmarks:      {metrics.total_bookmarks}")
        print(f"  Folders:        {metrics.total_folders}")
        print(
            f"  Duplicates:     {metrics.duplicate_count} "
            f"(in {len(metrics.duplicates)} groups)"
        )
        print(f"  Dead links:     {len(metrics.dead_links)}")
        print(f"  Stale:          {len(metrics.stale_bookmarks)}")
        print(f"  Uncategorized:  {metrics.uncategorized_count}")
        if metrics.domain_distribution:
            print("  Top domains:")
            for domain in metrics.domain_distribution[:5]:
                print(f"    {domain.domain:<30} {domain.count:>5} ({domain.percentage}%)")
        return 0

    async def _cmd_duplicates(self, service: SiftService, args) -> int:
        groups = find_duplicates(await service.get_bookmarks())
        if not groups:
            print("No duplicates found.")
            return 0

        for group in groups:
            keep = select_bookmark_to_keep(group)
            print(group.normalized_url)
            for bookmark in group.bookmarks:
                marker = "keep" if bookmark.id == keep.id else "dup "
                print(f"  [{marker}] {bookmark.title or '(untitled)'} ({bookmark.url})")

        if args.remove:
            result = await service.remove_duplicates(groups)
            print(f"Removed {result['removed']} duplicate bookmarks.")
        return 0

    async def _cmd_stale(self, service: SiftService, args) -> int:
        settings = await service.settings_manager.get_settings()
        stale = await get_stale_bookmarks(
            await service.get_bookmarks(),
            settings.stale_threshold_days,
            service.history,
        )
        print(
            f"{len(stale)} bookmarks not visited in "
            f"{settings.stale_threshold_days} days:"
        )
        for bookmark in stale:
            if bookmark.last_visited:
                visited = ms_to_datetime(bookmark.last_visited).strftime("%Y-%m-%d")
            else:
                visited = "never"
            print(f"  {bookmark.title or '(untitled)'} ({bookmark.url}) last visited {visited}")

        if args.delete and stale:
            result = await service.delete_bookmarks(stale)
            print(f"Deleted {result['deleted']} stale bookmarks.")
        return 0

    async def _cmd_check_links(self, service: SiftService, args) -> int:
        result = await service.dead_link_task.start()
        if not result.started:
            print(result.message)
            return 1

        print(f"Checking links ({result.skipped} skipped using cached results)...")
        await wait_with_progress(service.dead_link_task, dead_link_progress)

        state = await service.dead_link_task.get_status()
        self._print_dead_link_status(state)
        return 0 if not state.error else 1

    async def _cmd_categorize(self, service: SiftService, args) -> int:
        result = await service.categorization_task.start(target_folder=args.folder)
        if not result.started:
            print(result.message)
            return 1

        print("Categorizing bookmarks...")
        await wait_with_progress(service.categorization_task, categorization_progress)

        state = await service.categorization_task.get_status()
        self._print_categorization_status(state)
        return 0 if not state.error else 1

    async def _cmd_status(self, service: SiftService, args) -> int:
        self._print_dead_link_status(await service.dead_link_task.get_status())
        self._print_categorization_status(
            await service.categorization_task.get_status()
        )
        return 0

    def _selected_tasks(self, service: SiftService, task: str) -> List[Any]:
        tasks = []
        if task in ("dead-links", "all"):
            tasks.append(service.dead_link_task)
        if task in ("categorization", "all"):
            tasks.append(service.categorization_task)
        return tasks

    async def _cmd_cancel(self, service: SiftService, args) -> int:
        for task in self._selected_tasks(service, args.task):
            await task.cancel()
            print(f"{task.task_name}: {(await task.get_status()).status.value}")
        return 0

    async def _cmd_clear_results(self, service: SiftService, args) -> int:
        for task in self._selected_tasks(service, args.task):
            await task.clear_results()
            print(f"{task.task_name}: results cleared")
        return 0

    async def _cmd_settings(self, service: SiftService, args) -> int:
        if args.assignments:
            updates = dict(parse_setting(a) for a in args.assignments)
            settings = await service.save_settings(updates)
        else:
            settings = await service.get_settings()

        for key, value in settings.items():
            print(f"{key} = {value}")
        return 0

    # ------------------------------------------------------------------
    # Output helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _print_task_header(name: str, state: TaskState) -> None:
        line = f"{name}: {state.status.value}"
        if state.error:
            line += f" (error: {state.error})"
        print(line)

    def _print_dead_link_status(self, state) -> None:
        self._print_task_header("Dead link check", state)
        print(f"  Checked {state.checked}/{state.total}, skipped {state.skipped}")
        print(
            f"  Dead links: {len(state.dead_links)} "
            f"({state.cached_dead_count} from cache)"
        )
        for bookmark in state.dead_links:
            print(f"    {bookmark.title or '(untitled)'} ({bookmark.url})")

    def _print_categorization_status(self, state) -> None:
        self._print_task_header("Categorization", state)
        if state.phase:
            print(f"  Phase: {state.phase.value}")
        print(f"  Batches: {state.current_batch}/{state.total_batches}")
        print(
            f"  Created {state.categories_created}/{len(state.categories)} categories, "
            f"{state.bookmarks_copied} bookmarks copied"
        )
        if state.target_folder:
            print(f"  Folder: Sift/{state.target_folder}")

    # ------------------------------------------------------------------
    # Entry
    # ------------------------------------------------------------------

    COMMANDS = {
        "health": "_cmd_health",
        "duplicates": "_cmd_duplicates",
        "stale": "_cmd_stale",
        "check-links": "_cmd_check_links",
        "status": "_cmd_status",
        "cancel": "_cmd_cancel",
        "clear-results": "_cmd_clear_results",
        "categorize": "_cmd_categorize",
        "settings": "_cmd_settings",
    }

    @staticmethod
    def _modifies_bookmarks(args: argparse.Namespace) -> bool:
        if args.command == "duplicates":
            return args.remove
        if args.command == "stale":
            return args.delete
        return args.command == "categorize"

    async def _run_command(self, config: AppConfig, args: argparse.Namespace) -> int:
        service, tree, notifier = self._build_service(config)

        try:
            exit_code = await getattr(self, self.COMMANDS[args.command])(service, args)
        finally:
            if isinstance(service.history, ChromiumHistory):
                service.history.close()

        if self._modifies_bookmarks(args):
            tree.save(config.paths.bookmarks_file)
        for title, message in notifier.notifications:
            print(f"{title}: {message}")
        return exit_code

    def run(self, args=None) -> int:
        """Execute CLI interface."""
        parsed_args = self.parse_args(args)

        try:
            if parsed_args.create_config:
                ConfigurationManager(parsed_args.config).create_sample_config(
                    parsed_args.create_config
                )
                print(f"Configuration template written to {parsed_args.create_config}")
                return 0

            if not parsed_args.command:
                self.parser.print_help()
                return 1

            config = self._load_config(parsed_args)
            setup_logging(
                level="DEBUG" if parsed_args.verbose else config.logging.level,
                log_file=config.logging.file,
                console_output=config.logging.console or parsed_args.verbose,
            )
            self.logger.info(f"Running command: {parsed_args.command}")

            return asyncio.run(self._run_command(config, parsed_args))

        except SiftError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            print("Interrupted", file=sys.stderr)
            return 130
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            self.logger.exception("Unexpected error in CLI")
            return 1


def main(args=None):
    """Main entry point for the CLI."""
    cli = CLIInterface()
    return cli.run(args)


if __name__ == "__main__":
    sys.exit(main())
