"""User-facing warning when a sync cycle could not obtain the mod list."""

from __future__ import annotations

from typing import Callable, Optional

from .models import SyncOutcome

INCOMPLETE_KEY = "remote_sync.warn.incomplete"
INCOMPLETE_MESSAGE = (
    "RemoteSync could not complete synchronization. "
    "You may observe missing mods or outdated mods."
)


def incomplete_warning(outcome: SyncOutcome) -> Optional[str]:
    """Warning text for ``outcome``, or None when the sync was complete."""
    if outcome.incomplete:
        return INCOMPLETE_MESSAGE
    return None


def report_incomplete(outcome: SyncOutcome, warn: Callable[[str, str], None]) -> bool:
    """Hand the incomplete-sync warning to the host, if there is one.

    Args:
        outcome: Settled sync outcome.
        warn: Host callback taking ``(translation_key, message)``. It must
            not block startup.

    Returns:
        bool: True if a warning was raised.
    """
    message = incomplete_warning(outcome)
    if message is None:
        return False
    warn(INCOMPLETE_KEY, message)
    return True
