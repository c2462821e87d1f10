"""Load and save the JSON state file holding every character profile."""

import contextlib
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from senseki.db.models import DEFAULT_KEEP_COUNT, ProfileConfig, ProfileDB, SavedState

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when the state file cannot be read or written."""


def load_state(path: Path) -> SavedState:
    """Read saved state; a missing file is an empty state."""
    if not path.exists():
        logger.info("No saved state at %s, starting fresh", path)
        return SavedState()
    try:
        state = SavedState.model_validate_json(path.read_bytes())
    except (OSError, ValidationError) as exc:
        raise StorageError(f"Failed to load state from {path}: {exc}") from exc
    logger.debug("Loaded %d profile(s) from %s", len(state.profiles), path)
    return state


def save_state(path: Path, state: SavedState) -> None:
    """Write state atomically: temp file in the same directory, then replace."""
    payload = state.model_dump_json(by_alias=True, indent=2)
    directory = path.parent
    try:
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path.name}.", suffix=".tmp", dir=directory,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except BaseException:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise
    except OSError as exc:
        raise StorageError(f"Failed to save state to {path}: {exc}") from exc
    logger.debug("Saved %d profile(s) to %s", len(state.profiles), path)


def init_profile(
    state: SavedState,
    identity: str,
    default_keep_count: int = DEFAULT_KEEP_COUNT,
) -> ProfileDB:
    """Return the profile for ``identity``, creating it on first use."""
    profile = state.profiles.get(identity)
    if profile is None:
        profile = ProfileDB(config=ProfileConfig(keep_count=default_keep_count))
        state.profiles[identity] = profile
        logger.info("Created profile %s (keep_count=%d)", identity, default_keep_count)
    return profile

