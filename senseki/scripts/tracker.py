import argparse
import asyncio
import logging
import shlex
import sys
from functools import partial
from pathlib import Path

from senseki.commands import dispatch
from senseki.config import get_settings
from senseki.db.models import SavedState
from senseki.db.storage import StorageError, load_state, save_state
from senseki.pipeline.capture import CaptureService
from senseki.pipeline.report import Channel, ReportLine
from senseki.pipeline.session import TrackerSession, open_session
from senseki.source.models import load_telemetry_export

logger = logging.getLogger(__name__)

# Console input that stands for the game's "combat ended" event
COMBAT_ENDED = "combat-ended"
QUIT_COMMANDS = frozenset({"quit", "exit"})


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Boss fight history and comparison")
    parser.add_argument("--db", type=Path, help="State file (default: STORAGE__PATH)")
    parser.add_argument(
        "--source", type=Path, help="Damage meter export file (default: SOURCE__PATH)",
    )
    parser.add_argument("--character", help="Character name (default: CHARACTER__NAME)")
    parser.add_argument("--realm", help="Realm name (default: CHARACTER__REALM)")
    parser.add_argument(
        "--capture-since",
        type=int,
        dest="capture_since",
        help="Capture every meter segment after the first N and exit",
    )
    parser.add_argument(
        "--interactive",
        action="store_true",
        help=f"Read commands from stdin; '{COMBAT_ENDED}' schedules a capture",
    )
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Command to run")
    return parser.parse_args(argv)


def format_line(line: ReportLine) -> str:
    if line.channel == Channel.ERROR:
        return f"Error: {line.text}"
    return line.text


def print_lines(lines: list[ReportLine]) -> None:
    for line in lines:
        print(format_line(line))


def _save(path: Path, state: SavedState, *_: object) -> None:
    save_state(path, state)


async def run_console(
    session: TrackerSession,
    capture: CaptureService,
    save,
    stream=None,
) -> None:
    """Read command lines until EOF or quit; saves after every change."""
    stream = stream or sys.stdin
    loop = asyncio.get_running_loop()
    try:
        while True:
            raw = await loop.run_in_executor(None, stream.readline)
            if not raw:
                break
            text = raw.strip()
            if text in QUIT_COMMANDS:
                break
            if text == COMBAT_ENDED:
                capture.schedule_check()
                continue
            result = dispatch(session, text)
            print_lines(result.lines)
            if result.changed:
                save()
    finally:
        capture.cancel()


def run(
    command: list[str],
    *,
    db_path: Path | None = None,
    source_path: Path | None = None,
    character: str | None = None,
    realm: str | None = None,
    capture_since: int | None = None,
    interactive: bool = False,
) -> int:
    settings = get_settings()
    db_path = db_path or settings.storage.path
    source_path = source_path or settings.source.path

    try:
        state = load_state(db_path)
    except StorageError:
        logger.exception("Cannot open saved state")
        return 1

    session = open_session(
        state,
        character or settings.character.name,
        realm or settings.character.realm,
        default_keep_count=settings.storage.default_keep_count,
    )
    save = partial(_save, db_path, state)
    capture = CaptureService(
        session,
        partial(load_telemetry_export, source_path),
        delay_seconds=settings.capture.delay_seconds,
        on_capture=save,
    )

    try:
        if capture_since is not None:
            if capture.start():
                session.last_segment_count = capture_since
                captured = capture.check_for_new_segments()
                logger.info("Captured %d fight(s)", len(captured))
            return 0

        if interactive:
            capture.start()
            asyncio.run(run_console(session, capture, save))
            return 0

        result = dispatch(session, shlex.join(command))
        print_lines(result.lines)
        if result.changed:
            save()
        return 0
    except StorageError:
        logger.exception("Cannot save state")
        return 1


def main() -> None:
    args = parse_args()
    logging.basicConfig(level=get_settings().log_level)
    sys.exit(run(
        args.command,
        db_path=args.db,
        source_path=args.source,
        character=args.character,
        realm=args.realm,
        capture_since=args.capture_since,
        interactive=args.interactive,
    ))


if __name__ == "__main__":
    main()
