"""
Edit session: the history of one image and the undo/redo cursor.

The module-level functions are pure transitions (state in, state out) over
the frozen ``EditSessionState``.  A re-render that grabbed the previous state
keeps seeing a complete, consistent history while the next one is built.

``EditSession`` is the single writer that holds the live state reference
for one editing activity.  It also hands out request generations so a
backend result that arrives after the session moved on (or was discarded)
is dropped instead of committed.
"""

import logging

from snapedit.errors import NoOp, OperationInProgress
from snapedit.geometry import aspect_ratio_of
from snapedit.models import EditSessionState, HistoryEntry, ImageDescriptor, OperationKind

logger = logging.getLogger(__name__)


# =============================================================================
# Pure transitions
# =============================================================================
def start(initial: ImageDescriptor) -> EditSessionState:
    """Open a session whose only entry is the ORIGINAL image."""
    entry = HistoryEntry(OperationKind.ORIGINAL, initial)
    return EditSessionState(
        history=(entry,),
        cursor=0,
        aspect_ratio=aspect_ratio_of(initial.width, initial.height),
    )


def commit(state: EditSessionState, kind: OperationKind, image: ImageDescriptor) -> EditSessionState:
    """Append a new entry after the cursor, dropping any redo branch."""
    kept = state.history[: state.cursor + 1]
    history = kept + (HistoryEntry(kind, image),)
    return EditSessionState(history=history, cursor=len(history) - 1, aspect_ratio=state.aspect_ratio)


def can_undo(state: EditSessionState) -> bool:
    return state.cursor > 0


def can_redo(state: EditSessionState) -> bool:
    return state.cursor < len(state.history) - 1


def undo(state: EditSessionState) -> EditSessionState:
    """Step the cursor back.  At the first entry the same state is returned."""
    if not can_undo(state):
        return state
    return EditSessionState(history=state.history, cursor=state.cursor - 1, aspect_ratio=state.aspect_ratio)


def redo(state: EditSessionState) -> EditSessionState:
    """Step the cursor forward.  At the last entry the same state is returned."""
    if not can_redo(state):
        return state
    return EditSessionState(history=state.history, cursor=state.cursor + 1, aspect_ratio=state.aspect_ratio)


def current(state: EditSessionState) -> ImageDescriptor:
    return state.history[state.cursor].image


def current_entry(state: EditSessionState) -> HistoryEntry:
    return state.history[state.cursor]


# =============================================================================
# Single-writer holder
# =============================================================================
class EditSession:
    """Owns the live ``EditSessionState`` of one editing activity.

    Operations run elsewhere (a worker thread, the pipeline); their results
    only land here through ``finish_operation`` with the generation handed
    out by ``begin_operation``.  At most one generation is outstanding.
    """

    def __init__(self, initial: ImageDescriptor):
        self._state = start(initial)
        self._generation = 0
        self._pending: int | None = None
        self._discarded = False
        logger.debug("Session started: %d×%d %s", initial.width, initial.height, initial.format.label)

    # --- read access ---

    @property
    def state(self) -> EditSessionState:
        return self._state

    @property
    def current(self) -> ImageDescriptor:
        return current(self._state)

    @property
    def can_undo(self) -> bool:
        return can_undo(self._state)

    @property
    def can_redo(self) -> bool:
        return can_redo(self._state)

    @property
    def busy(self) -> bool:
        """True while an operation is outstanding."""
        return self._pending is not None

    @property
    def discarded(self) -> bool:
        return self._discarded

    # --- cursor moves ---

    def _check_idle(self, action: str) -> None:
        if self._pending is not None:
            raise OperationInProgress(f"cannot {action} while operation {self._pending} is in flight")

    def undo(self) -> ImageDescriptor:
        """Step back and return the new current image.

        Raises ``NoOp`` at the first entry and ``OperationInProgress`` while an
        operation is outstanding (its result is built on the current entry).
        """
        self._check_idle("undo")
        new_state = undo(self._state)
        if new_state is self._state:
            raise NoOp("nothing to undo")
        self._state = new_state
        logger.debug("Undo → cursor %d/%d", new_state.cursor, len(new_state.history) - 1)
        return self.current

    def redo(self) -> ImageDescriptor:
        """Step forward and return the new current image.

        Raises ``NoOp`` at the last entry and ``OperationInProgress`` while an
        operation is outstanding.
        """
        self._check_idle("redo")
        new_state = redo(self._state)
        if new_state is self._state:
            raise NoOp("nothing to redo")
        self._state = new_state
        logger.debug("Redo → cursor %d/%d", new_state.cursor, len(new_state.history) - 1)
        return self.current

    # --- operation dispatch ---

    def begin_operation(self) -> int:
        """Reserve the session for one operation and return its generation."""
        if self._discarded:
            raise OperationInProgress("session has been discarded")
        if self._pending is not None:
            raise OperationInProgress(f"operation {self._pending} is still in flight")
        self._generation += 1
        self._pending = self._generation
        return self._generation

    def finish_operation(self, generation: int, new_state: EditSessionState) -> bool:
        """Install *new_state* if *generation* is the outstanding operation.

        Returns False (and leaves the session untouched) for stale results.
        """
        if self._discarded or generation != self._pending:
            logger.info("Discarding stale result for operation %d", generation)
            return False
        self._pending = None
        self._state = new_state
        entry = current_entry(new_state)
        logger.info(
            "Committed %s → %d×%d %s (%d entries)",
            entry.kind.name, entry.image.width, entry.image.height,
            entry.image.format.label, len(new_state.history),
        )
        return True

    def abandon_operation(self, generation: int) -> None:
        """Release the reservation after a failed operation."""
        if generation == self._pending:
            self._pending = None

    def discard(self) -> None:
        """Drop the session; any result still in flight will be ignored."""
        self._discarded = True
        self._pending = None
