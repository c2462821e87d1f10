"""Per-character session context shared by capture and query operations."""

import datetime
from collections.abc import Callable
from dataclasses import dataclass, field

from senseki.db.models import DEFAULT_KEEP_COUNT, ProfileDB, SavedState
from senseki.db.storage import init_profile
from senseki.db.store import HistoryStore


def local_now() -> datetime.datetime:
    return datetime.datetime.now().astimezone()


@dataclass
class TrackerSession:
    """State for one character: its profile, the capture cursor and a clock.

    ``last_segment_count`` is how many meter segments have already been seen,
    so only segments recorded after it are captured.
    """

    identity: str
    actor_name: str
    state: SavedState
    profile: ProfileDB | None
    clock: Callable[[], datetime.datetime] = local_now
    source_available: bool = True
    last_segment_count: int = 0
    store: HistoryStore = field(init=False)

    def __post_init__(self) -> None:
        self.store = HistoryStore(self.profile)

    def now(self) -> datetime.datetime:
        return self.clock()

    def today(self) -> datetime.date:
        return self.clock().date()


def open_session(
    state: SavedState,
    character: str,
    realm: str,
    *,
    default_keep_count: int = DEFAULT_KEEP_COUNT,
    clock: Callable[[], datetime.datetime] = local_now,
) -> TrackerSession:
    """Open a session for ``<character>-<realm>``, creating its profile if new.

    Without a character name the session has no profile and every store
    operation reports the database as not initialized.
    """
    identity = f"{character}-{realm}"
    profile = init_profile(state, identity, default_keep_count) if character else None
    return TrackerSession(
        identity=identity,
        actor_name=character,
        state=state,
        profile=profile,
        clock=clock,
    )
