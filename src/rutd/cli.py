# src/rutd/cli.py

"""
Command-line interface for rutd.

This module:
- defines argument parsing and subcommands,
- loads configuration and sets up logging once per invocation,
- delegates task logic to the engine and user feedback to the display.

Every command returns 0 on success. Expected failures are reported once
through the display and return 1.
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from typing import Callable, Optional

from rutd.engine.complete import COMPLETERS, format_candidate
from rutd.engine.config import Config, ConfigManager
from rutd.engine.daterange import parse_date_range
from rutd.engine.display import Display
from rutd.engine.errors import IOFailure, RutdError
from rutd.engine.filter import DateRange, Filter
from rutd.engine.logs import TRACE, init_logging
from rutd.engine.manager import TaskManager
from rutd.engine.model import MergeStrategy, Priority, Status
from rutd.engine.render import TerminalDisplay
from rutd.engine.sort import SortOptions, parse_sort_options

log = logging.getLogger(__name__)

PROG = "rutd"

DATE_HELP = (
    "Date range: <date>, <date>-, -<date> or <date>-<date>. "
    "<date> is YYYY, YYYY/MM, YYYY/MM/DD or a relative offset such as "
    "3d, 2w, 1m, 1y (combinable, e.g. 1m2d). Relative dates are rounded "
    "to the last unit; prefix with '+' for the exact offset."
)

# options whose values may start with '-'
_HYPHEN_VALUE_OPTIONS = {
    "-a": "--added",
    "--added": "--added",
    "-u": "--updated",
    "--updated": "--updated",
    "-d": "--done",
    "--done": "--done",
    "-o": "--sort",
    "--sort": "--sort",
}


# ---------------------------------------------------------------------
# Argument types
# ---------------------------------------------------------------------

def _arg_type(parse: Callable, name: str) -> Callable:
    """
    Wrap an engine parser so argparse reports its failures as usage errors.
    """

    def convert(raw: str):
        try:
            return parse(raw)
        except (RutdError, ValueError) as e:
            raise argparse.ArgumentTypeError(str(e)) from e

    convert.__name__ = name
    return convert


_priority = _arg_type(Priority.parse, "priority")
_status = _arg_type(Status.parse, "status")
_merge = _arg_type(MergeStrategy.parse, "merge strategy")
_date_range = _arg_type(parse_date_range, "date range")
_sort = _arg_type(parse_sort_options, "sort options")


def _join_hyphen_values(argv: list[str]) -> list[str]:
    """
    Rewrite `--added -7d` as `--added=-7d` so argparse accepts values
    starting with '-'.
    """
    out: list[str] = []
    i = 0
    while i < len(argv):
        token = argv[i]
        if token == "--":
            out.extend(argv[i:])
            break
        long_name = _HYPHEN_VALUE_OPTIONS.get(token)
        if long_name is not None and i + 1 < len(argv):
            out.append(f"{long_name}={argv[i + 1]}")
            i += 2
            continue
        out.append(token)
        i += 1
    return out


# ---------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------

def _add_filter_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("-p", "--priority", type=_priority, help="Filter by priority")
    p.add_argument("-c", "--scope", help="Filter by scope (project name)")
    p.add_argument("-t", "--type", dest="task_type", help="Filter by type")
    p.add_argument("-s", "--status", type=_status, help="Filter by status")
    p.add_argument(
        "-a",
        "--added",
        type=_date_range,
        metavar="DATERANGE",
        help=f"Filter by creation date. {DATE_HELP}",
    )
    p.add_argument(
        "-u",
        "--updated",
        type=_date_range,
        metavar="DATERANGE",
        help="Filter by last update date",
    )
    p.add_argument(
        "-d",
        "--done",
        type=_date_range,
        metavar="DATERANGE",
        help="Filter by completion date, including cancelled tasks",
    )
    p.add_argument(
        "-f",
        "--fuzzy",
        metavar="DESCRIPTION",
        help="Fuzzy match on the description",
    )


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=argparse.SUPPRESS,
        help="Verbosity level (repeat for more)",
    )

    parser = argparse.ArgumentParser(
        prog=PROG,
        description="A to-do list manager for your rushing to-dos",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Verbosity level (repeat for more)",
    )
    sub = parser.add_subparsers(dest="command", required=True, metavar="<command>")

    def add(name: str, aliases: list[str], help_text: Optional[str], func, failure: str):
        kwargs = {"aliases": aliases, "parents": [common]}
        if help_text is not None:
            kwargs["help"] = help_text
        p = sub.add_parser(name, **kwargs)
        p.set_defaults(failure=failure)
        if func is not None:
            p.set_defaults(func=func)
        return p

    # ------------------------------------------------------------------
    # Task commands
    # ------------------------------------------------------------------

    p_add = add("add", ["a"], "Add a new task", cmd_add, "Fail to add task")
    p_add.add_argument("description", help="Task description")
    p_add.add_argument(
        "-p",
        "--priority",
        type=_priority,
        default=Priority.NORMAL,
        help="Task priority (default: normal)",
    )
    p_add.add_argument("-s", "--scope", help="Task scope (project name)")
    p_add.add_argument("-t", "--type", dest="task_type", help="Task type (e.g. feat, fix, docs)")

    p_list = add("list", ["l"], "List tasks", cmd_list, "Fail to load tasks")
    _add_filter_arguments(p_list)
    p_list.add_argument(
        "-o",
        "--sort",
        type=_sort,
        metavar="SPEC",
        help="Sort order as +/- and a criterion letter pairs, e.g. -S-p+s "
        "(p priority, s scope, t type, S status, c created, u updated, "
        "C completed, T time spent)",
    )
    p_list.add_argument(
        "--stats",
        action="store_true",
        help="Show statistics (counts, total time spent)",
    )

    p_show = add("show", [], "Show a single task", cmd_show, "Fail to show task")
    p_show.add_argument("id", help="Task ID (or unique prefix)")

    p_done = add("done", ["d", "f"], "Mark task as completed", cmd_done, "Fail to mark task as done")
    p_done.add_argument("id", help="Task ID (or unique prefix)")

    p_edit = add("edit", ["e"], "Edit task description", cmd_edit, "Fail to update task")
    p_edit.add_argument("id", help="Task ID (or unique prefix)")

    p_start = add("start", ["s"], "Start working on a task", cmd_start, "Fail to start task")
    p_start.add_argument("id", help="Task ID (or unique prefix)")

    add("stop", ["p"], "Stop working on the active task", cmd_stop, "Fail to stop task")

    p_abort = add("abort", ["x", "c"], "Abort a task", cmd_abort, "Fail to abort task")
    p_abort.add_argument(
        "id",
        nargs="?",
        help="Task ID, if not specified, abort the active task",
    )

    p_clean = add(
        "clean",
        ["purge", "delete", "rm"],
        "Remove tasks matching the filters",
        cmd_clean,
        "Fail to clean tasks",
    )
    _add_filter_arguments(p_clean)
    p_clean.add_argument(
        "--force",
        action="store_true",
        help="Delete without prompting",
    )

    # ------------------------------------------------------------------
    # Remote commands
    # ------------------------------------------------------------------

    p_sync = add("sync", ["y", "u"], "Sync with remote repository", cmd_sync, "Fail to sync tasks")
    p_sync.add_argument(
        "-p",
        "--prefer",
        type=_merge,
        default=MergeStrategy.NONE,
        help="Conflict resolution preference when merging: none, local or remote",
    )

    p_clone = add("clone", ["pull"], "Clone a remote repository", cmd_clone, "Fail to clone repository")
    p_clone.add_argument("url", help="Remote repository URL to clone")

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    p_config = add("config", ["cfg"], "Manage configuration", None, "Fail to manage configuration")
    config_sub = p_config.add_subparsers(dest="config_command", required=True, metavar="<action>")

    p_get = config_sub.add_parser("get", help="Get a configuration value")
    p_get.add_argument("key", help='Configuration key (e.g. "git.username")')
    p_get.set_defaults(func=cmd_config_get)

    p_set = config_sub.add_parser("set", help="Set a configuration value")
    p_set.add_argument("key", help='Configuration key (e.g. "git.username")')
    p_set.add_argument("value", help="Configuration value")
    p_set.set_defaults(func=cmd_config_set)

    p_unset = config_sub.add_parser("unset", help="Remove a configuration value")
    p_unset.add_argument("key", help='Configuration key (e.g. "git.username")')
    p_unset.set_defaults(func=cmd_config_unset)

    p_cshow = config_sub.add_parser("show", help="Show all configuration values")
    p_cshow.set_defaults(func=cmd_config_show)

    # ------------------------------------------------------------------
    # Completion (hidden)
    # ------------------------------------------------------------------

    p_complete = add("complete", [], None, cmd_complete, "Fail to complete")
    p_complete.add_argument("kind", choices=sorted(COMPLETERS))
    p_complete.add_argument("current", nargs="?", default="")

    return parser


# ---------------------------------------------------------------------
# Invocation context
# ---------------------------------------------------------------------

@dataclass(slots=True)
class App:
    config: Config
    config_manager: ConfigManager
    manager: TaskManager
    display: Display


def _build_filter(args: argparse.Namespace) -> Filter:
    return Filter(
        priority=args.priority,
        scope=args.scope,
        task_type=args.task_type,
        status=args.status,
        creation_time=args.added,
        update_time=args.updated,
        completion_time=args.done,
        fuzzy=args.fuzzy,
    )


def _describe_range(rng: Optional[DateRange]) -> str:
    if rng is None:
        return "-"
    start = rng.start.isoformat() if rng.start else "..."
    end = rng.end.isoformat() if rng.end else "..."
    return f"[{start}, {end})"


# ---------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------

def cmd_add(app: App, args: argparse.Namespace) -> int:
    log.debug("Add task: %s", args.description)
    log.debug("Priority: %s", args.priority.value)
    if args.scope:
        log.debug("Scope: %s", args.scope)
    if args.task_type:
        log.debug("Type: %s", args.task_type)

    task_id = app.manager.add(args.description, args.priority, args.scope, args.task_type)
    app.display.show_success(f"Added task with ID: {task_id}")
    return 0


def cmd_list(app: App, args: argparse.Namespace) -> int:
    task_filter = _build_filter(args)
    log.debug(
        "Filter: created %s, updated %s, completed %s",
        _describe_range(task_filter.creation_time),
        _describe_range(task_filter.update_time),
        _describe_range(task_filter.completion_time),
    )

    sort: Optional[SortOptions] = args.sort
    tasks = app.manager.list(task_filter, sort)

    if not tasks:
        app.display.show_success("No tasks found")
        return 0

    app.display.show_tasks_list(tasks)
    if args.stats:
        app.display.show_task_stats(tasks)
    return 0


def cmd_show(app: App, args: argparse.Namespace) -> int:
    app.display.show_task_detail(app.manager.show(args.id))
    return 0


def cmd_done(app: App, args: argparse.Namespace) -> int:
    task_id = app.manager.mark_done(args.id)
    app.display.show_success(f"Task {task_id} marked as done")
    return 0


def cmd_edit(app: App, args: argparse.Namespace) -> int:
    task_id, changed = app.manager.edit(args.id, app.display)
    if changed:
        app.display.show_success(f"Updated task {task_id}")
    else:
        app.display.show_success(f"No changes made to task {task_id}")
    return 0


def cmd_start(app: App, args: argparse.Namespace) -> int:
    task_id = app.manager.start(args.id)
    app.display.show_success(f"Started task {task_id}")
    return 0


def cmd_stop(app: App, args: argparse.Namespace) -> int:
    task_id = app.manager.stop()
    app.display.show_success(f"Stopped task {task_id}")
    return 0


def cmd_abort(app: App, args: argparse.Namespace) -> int:
    task_id = app.manager.abort(args.id)
    app.display.show_success(f"Aborted task {task_id}")
    return 0


def cmd_clean(app: App, args: argparse.Namespace) -> int:
    log.debug("Force clean without confirmation: %s", args.force)
    count = app.manager.clean(_build_filter(args), args.force, app.display)
    app.display.show_success(f"Cleaned {count} tasks")
    return 0


def cmd_sync(app: App, args: argparse.Namespace) -> int:
    log.debug("Conflict resolution preference: %s", args.prefer.value)
    app.manager.sync(args.prefer)
    app.display.show_success("Successfully synced with remote repository")
    return 0


def cmd_clone(app: App, args: argparse.Namespace) -> int:
    log.debug("Repository URL: %s", args.url)
    app.manager.clone_repo(args.url)
    app.display.show_success(f"Successfully cloned remote repository: {args.url}")
    return 0


def cmd_config_get(app: App, args: argparse.Namespace) -> int:
    print(app.config_manager.get(args.key))
    return 0


def cmd_config_set(app: App, args: argparse.Namespace) -> int:
    app.config_manager.set(args.key, args.value)
    app.display.show_success(f"Set {args.key} = {args.value}")
    return 0


def cmd_config_unset(app: App, args: argparse.Namespace) -> int:
    app.config_manager.unset(args.key)
    app.display.show_success(f"Unset {args.key}")
    return 0


def cmd_config_show(app: App, args: argparse.Namespace) -> int:
    for key, value in app.config_manager.list_values().items():
        print(f"{key} = {value}")
    return 0


def cmd_complete(app: App, args: argparse.Namespace) -> int:
    for candidate in COMPLETERS[args.kind](app.config, args.current):
        print(format_candidate(candidate))
    return 0


# ---------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------

def main(
    argv: list[str] | None = None,
    display: Optional[Display] = None,
    config_manager: Optional[ConfigManager] = None,
) -> int:
    parser = _build_parser()
    raw = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(_join_hyphen_values(raw))

    display = display if display is not None else TerminalDisplay()
    config_manager = config_manager if config_manager is not None else ConfigManager()

    try:
        config = config_manager.effective_config()
    except RutdError as e:
        display.show_failure(f"Failed to load configuration: {e}")
        return 1

    try:
        init_logging(
            args.verbose,
            config.path.log_file_path,
            config.log.history,
            config.log.console,
        )
    except OSError as e:
        display.show_failure(f"Failed to initialise logging: {e}")
        return 1

    log.log(TRACE, "Received cli args: %s", args)
    log.log(TRACE, "Loaded configuration: %s", config)

    app = App(
        config=config,
        config_manager=config_manager,
        manager=TaskManager(config.path, config.git),
        display=display,
    )

    try:
        return args.func(app, args)
    except RutdError as e:
        log.debug("Command %s failed: %s", args.command, e)
        display.show_failure(f"{args.failure}: {e}")
        return 1
    except OSError as e:
        display.show_failure(f"{args.failure}: {IOFailure(str(e))}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
