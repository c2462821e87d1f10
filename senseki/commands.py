"""Text command dispatch: parse a command line and produce report lines.

Mirrors the in-game slash command: an empty line shows the summary. Boss
names containing spaces are quoted: ``show "Majordomo Executus-2"``.
"""

import logging
import shlex
from collections.abc import Callable
from dataclasses import dataclass, field

from senseki.db.store import InvalidConfigError
from senseki.pipeline.compare import compare_snapshots
from senseki.pipeline.report import (
    ReportLine,
    error_line,
    render_comparison,
    render_fight,
    render_list,
    render_summary,
)
from senseki.pipeline.resolver import NoData
from senseki.pipeline.session import TrackerSession

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "=== senseki Commands ===",
    "show-summary - Show boss history summary",
    "list - List all stored boss fights",
    "show <fight> - Show detailed stats for a fight",
    "compare <a> <b> - Compare two fights",
    "compare <a> <b> spells - Compare with per-ability breakdown",
    "delete <fight> - Delete a specific snapshot",
    "config keepcount <N> - Set retention count (default 3)",
    "help - Show commands",
    "Fight identifiers: Lucifron, Lucifron-2, Lucifron-Jan-02, Lucifron-2025-01-02",
)


@dataclass
class CommandResult:
    lines: list[ReportLine] = field(default_factory=list)
    changed: bool = False  # True when saved state was modified


Handler = Callable[[TrackerSession, list[str]], CommandResult]


def _usage(text: str) -> CommandResult:
    return CommandResult([error_line(f"Usage: {text}")])


def cmd_summary(session: TrackerSession, args: list[str]) -> CommandResult:
    return CommandResult(render_summary(session.store.summaries()))


def cmd_list(session: TrackerSession, args: list[str]) -> CommandResult:
    return CommandResult(render_list(session.store.bosses))


def cmd_show(session: TrackerSession, args: list[str]) -> CommandResult:
    if len(args) != 1:
        return _usage("show <fight>")
    result = session.store.resolve(args[0], session.today())
    if isinstance(result, NoData):
        return CommandResult([error_line(result.message)])
    return CommandResult(render_fight(result))


def cmd_compare(session: TrackerSession, args: list[str]) -> CommandResult:
    if len(args) not in (2, 3) or (len(args) == 3 and args[2].lower() != "spells"):
        return _usage("compare <a> <b> [spells]")
    today = session.today()
    old = session.store.resolve(args[0], today)
    if isinstance(old, NoData):
        return CommandResult([error_line(old.message)])
    new = session.store.resolve(args[1], today)
    if isinstance(new, NoData):
        return CommandResult([error_line(new.message)])
    comparison = compare_snapshots(
        old.snapshot, new.snapshot, include_abilities=len(args) == 3,
    )
    return CommandResult(render_comparison(old, new, comparison))


def cmd_delete(session: TrackerSession, args: list[str]) -> CommandResult:
    if len(args) != 1:
        return _usage("delete <fight>")
    result = session.store.delete(args[0], session.today())
    if isinstance(result, NoData):
        return CommandResult([error_line(result.message)])
    return CommandResult(
        [ReportLine(f"Deleted {result.encounter} kill #{result.index}")],
        changed=True,
    )


def cmd_config(session: TrackerSession, args: list[str]) -> CommandResult:
    if len(args) != 2 or args[0].lower() != "keepcount":
        return _usage("config keepcount <N>")
    try:
        count = session.store.set_keep_count(args[1])
    except InvalidConfigError as exc:
        return CommandResult([error_line(str(exc))])
    return CommandResult(
        [ReportLine(f"Keep count set to {count} (applies from the next capture)")],
        changed=True,
    )


def cmd_help(session: TrackerSession, args: list[str]) -> CommandResult:
    return CommandResult([ReportLine(text) for text in HELP_TEXT])


COMMANDS: dict[str, Handler] = {
    "show-summary": cmd_summary,
    "list": cmd_list,
    "show": cmd_show,
    "compare": cmd_compare,
    "delete": cmd_delete,
    "config": cmd_config,
    "help": cmd_help,
}


def dispatch(session: TrackerSession, command_line: str) -> CommandResult:
    """Run one command line against ``session``."""
    try:
        tokens = shlex.split(command_line)
    except ValueError as exc:
        return CommandResult([error_line(f"Cannot parse command: {exc}")])
    if not tokens:
        return cmd_summary(session, [])
    name, args = tokens[0], tokens[1:]
    handler = COMMANDS.get(name)
    if handler is None:
        logger.debug("Unknown command %r", name)
        return CommandResult([error_line(f"Unknown command: {name}. Type 'help' for commands.")])
    return handler(session, args)
