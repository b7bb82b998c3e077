from __future__ import annotations

import enum
import functools
import logging
import random
import threading
from typing import Any, Callable, Sequence

from ..errors import AssignmentError, PersistenceError, StateViolation, ValidationError
from . import store as slots
from .assignments import CHAIN, MIN_PARTICIPANTS, Assignment, generate, is_derangement
from .roster import clean_name

log = logging.getLogger(__name__)


class Phase(str, enum.Enum):
    IDLE = "idle"
    REGISTERING = "registering"
    DRAWING = "drawing"
    FINISHED = "finished"


Generator = Callable[[Sequence[str]], list[Assignment]]


def _serialized(method):
    """Run the method while holding the session lock."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.lock:
            return method(self, *args, **kwargs)
    return wrapper


class RevealSession:
    """
    Walks the group through the draw one person at a time.

    Idle -> Registering -> Drawing -> Finished. Finalizing registration
    computes the whole assignment set once; draw() then reveals the pending
    name for the current drawer and confirm() appends it to the results log
    and moves on. Cancel and reset drop everything and return to Idle.

    Every state change is written through to the slot store. If the store
    fails, the session carries on in memory and flags persistence_degraded.

    Operations hold a re-entrant lock, so one request at a time mutates the
    session; callers that check then act (the views) hold it too.
    """

    def __init__(
        self,
        store: slots.SlotStore | None = None,
        strategy: str = CHAIN,
        rng: random.Random | None = None,
        generator: Generator | None = None,
    ):
        self.store = store if store is not None else slots.MemorySlotStore()
        self.strategy = strategy
        self.rng = rng
        self.generator = generator
        self.lock = threading.RLock()
        self.persistence_degraded = False
        self._clear_memory()

    def _clear_memory(self) -> None:
        self.phase = Phase.IDLE
        self.roster: list[str] = []
        self.draw_order: list[str] = []
        self.assignments: list[Assignment] = []
        self.results: list[Assignment] = []
        self.position = 0
        self.pending: str | None = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _slot_value(self, key: str) -> Any:
        if key == slots.PARTICIPANTS:
            return list(self.roster)
        if key == slots.PHASE:
            return self.phase.value
        if key == slots.DRAW_ORDER:
            return list(self.draw_order)
        if key == slots.ASSIGNMENTS:
            return [a.to_dict() for a in self.assignments]
        if key == slots.RESULTS:
            return [a.to_dict() for a in self.results]
        if key == slots.POSITION:
            return self.position
        if key == slots.PENDING:
            return self.pending
        raise KeyError(key)

    def _degrade(self, err: PersistenceError) -> None:
        if not self.persistence_degraded:
            log.warning("Slot store failed, continuing in memory only: %s", err)
        self.persistence_degraded = True

    def _persist(self, *keys: str) -> None:
        if self.persistence_degraded:
            return
        try:
            for key in keys:
                self.store.write(key, self._slot_value(key))
        except PersistenceError as e:
            self._degrade(e)

    def _wipe_store(self) -> None:
        if self.persistence_degraded:
            return
        try:
            self.store.clear()
        except PersistenceError as e:
            self._degrade(e)

    @_serialized
    def load(self) -> None:
        """
        One-time read of the store on startup. Each slot is read on its own;
        missing slots keep their defaults. Drawing state that does not add up
        is thrown away, the store is cleared, and the session starts Idle.
        """
        self._clear_memory()
        try:
            values = {key: self.store.read(key) for key in slots.ALL_SLOTS}
        except PersistenceError as e:
            self._degrade(e)
            return

        def get(key: str, default: Any) -> Any:
            value = values[key]
            return default if value is slots.MISSING or value is None else value

        try:
            self.phase = Phase(get(slots.PHASE, Phase.IDLE.value))
            self.roster = [str(n) for n in get(slots.PARTICIPANTS, [])]
            self.draw_order = [str(n) for n in get(slots.DRAW_ORDER, [])]
            self.assignments = [Assignment.from_dict(d) for d in get(slots.ASSIGNMENTS, [])]
            self.results = [Assignment.from_dict(d) for d in get(slots.RESULTS, [])]
            self.position = int(get(slots.POSITION, 0))
            pending = get(slots.PENDING, None)
            self.pending = str(pending) if pending is not None else None
        except (ValueError, TypeError, KeyError):
            log.warning("Stored session is unreadable, starting fresh")
            self._clear_memory()
            self._wipe_store()
            return

        if not self._restored_state_is_consistent():
            log.warning("Stored session is inconsistent, starting fresh")
            self._clear_memory()
            self._wipe_store()
            return

        log.info("Restored session in phase %s with %d participants", self.phase.value, len(self.roster))

    def _restored_state_is_consistent(self) -> bool:
        for i, name in enumerate(self.roster):
            try:
                if clean_name(name, self.roster[:i]) != name:
                    return False
            except ValidationError:
                return False
        if self.phase == Phase.IDLE and self.roster:
            return False
        if self.phase in (Phase.IDLE, Phase.REGISTERING):
            return not (self.draw_order or self.assignments or self.results or self.position or self.pending)

        n = len(self.roster)
        if not is_derangement(self.roster, self.assignments):
            return False
        if self.draw_order != [a.drawer for a in self.assignments]:
            return False
        if self.results != self.assignments[: self.position]:
            return False
        if self.phase == Phase.FINISHED:
            return self.position == n and self.pending is None
        if not 0 <= self.position < n:
            return False
        return self.pending is None or self.pending == self.assignments[self.position].drawn

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def _require(self, *phases: Phase) -> None:
        if self.phase not in phases:
            raise StateViolation(f"Not allowed while {self.phase.value}")

    @_serialized
    def start_registration(self) -> None:
        if self.phase == Phase.REGISTERING:
            return
        try:
            self._require(Phase.IDLE)
        except StateViolation as e:
            log.info("start_registration rejected: %s", e)
            return
        self.phase = Phase.REGISTERING
        self._persist(slots.PHASE)

    @_serialized
    def add_participant(self, name: str | None) -> bool:
        try:
            self._require(Phase.REGISTERING)
            cleaned = clean_name(name, self.roster)
        except (StateViolation, ValidationError) as e:
            log.info("add_participant rejected: %s", e)
            return False
        self.roster.append(cleaned)
        self._persist(slots.PARTICIPANTS)
        return True

    @_serialized
    def edit_participant(self, index: int, new_name: str | None) -> bool:
        try:
            self._require(Phase.REGISTERING)
            if not 0 <= index < len(self.roster):
                raise ValidationError(f"No participant at position {index}")
            cleaned = clean_name(new_name, self.roster)
        except (StateViolation, ValidationError) as e:
            log.info("edit_participant rejected: %s", e)
            return False
        self.roster[index] = cleaned
        self._persist(slots.PARTICIPANTS)
        return True

    @_serialized
    def remove_participant(self, index: int) -> None:
        if self.phase != Phase.REGISTERING or not 0 <= index < len(self.roster):
            log.info("remove_participant ignored for position %s", index)
            return
        del self.roster[index]
        self._persist(slots.PARTICIPANTS)

    def _generate(self) -> list[Assignment]:
        if self.generator is not None:
            return self.generator(self.roster)
        return generate(self.roster, strategy=self.strategy, rng=self.rng)

    @_serialized
    def finalize_registration(self) -> bool:
        """Draw the whole assignment set and move to Drawing. False if too few participants."""
        try:
            self._require(Phase.REGISTERING)
            assignments = self._generate()
        except (StateViolation, AssignmentError) as e:
            log.info("finalize_registration rejected: %s", e)
            return False

        if not is_derangement(self.roster, assignments):
            # Fail closed rather than reveal a corrupt set
            log.error("Generator produced an invalid assignment set, not starting the draw")
            return False

        self.assignments = assignments
        self.draw_order = [a.drawer for a in assignments]
        self.results = []
        self.position = 0
        self.pending = None
        self.phase = Phase.DRAWING
        self._persist(*slots.ALL_SLOTS)
        log.info("Draw started with %d participants", len(self.roster))
        return True

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    @_serialized
    def draw(self) -> str | None:
        """
        Reveal the name drawn by the current drawer. Repeated calls before
        confirm() return the same name. None when not drawing.
        """
        try:
            self._require(Phase.DRAWING)
        except StateViolation as e:
            log.info("draw rejected: %s", e)
            return None
        if self.pending is None:
            self.pending = self.assignments[self.position].drawn
            self._persist(slots.PENDING)
        return self.pending

    @_serialized
    def confirm(self) -> None:
        if self.phase != Phase.DRAWING or self.pending is None:
            log.info("confirm ignored: nothing pending")
            return

        self.results.append(Assignment(self.draw_order[self.position], self.pending))
        self.position += 1
        self.pending = None
        changed = [slots.RESULTS, slots.POSITION, slots.PENDING]
        if self.position == len(self.draw_order):
            self.phase = Phase.FINISHED
            changed.append(slots.PHASE)
            log.info("Draw finished")
        self._persist(*changed)

    @_serialized
    def cancel(self) -> None:
        if self.phase == Phase.IDLE:
            return
        log.info("Session cancelled while %s", self.phase.value)
        self._clear_memory()
        self._wipe_store()

    @_serialized
    def reset(self) -> None:
        self._clear_memory()
        self._wipe_store()

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    @property
    def total(self) -> int:
        return len(self.roster)

    @property
    def current_drawer(self) -> str | None:
        if self.phase != Phase.DRAWING:
            return None
        return self.draw_order[self.position]

    @property
    def is_last_draw(self) -> bool:
        return bool(self.draw_order) and self.position == len(self.draw_order) - 1

    @property
    def is_penultimate_draw(self) -> bool:
        return bool(self.draw_order) and self.position == len(self.draw_order) - 2

    @property
    def remaining(self) -> int:
        if self.phase not in (Phase.DRAWING, Phase.FINISHED):
            return 0
        return len(self.draw_order) - self.position

    @property
    def progress_percent(self) -> float:
        if self.phase == Phase.FINISHED:
            return 100.0
        if self.phase != Phase.DRAWING:
            return 0.0
        return (self.position + 1) / len(self.draw_order) * 100

    @property
    def last_result(self) -> Assignment | None:
        return self.results[-1] if self.results else None

    @property
    def reel_names(self) -> list[str]:
        """Names the reveal animation cycles through before landing on the drawn one."""
        return list(self.roster)

    @_serialized
    def snapshot(self) -> dict[str, Any]:
        """Everything the presentation layer may read. Never includes undrawn assignments."""
        last = self.last_result
        return {
            "phase": self.phase.value,
            "participants": list(self.roster),
            "total": self.total,
            "position": self.position,
            "current_drawer": self.current_drawer,
            "pending": self.pending,
            "is_last_draw": self.is_last_draw,
            "is_penultimate_draw": self.is_penultimate_draw,
            "remaining": self.remaining,
            "progress_percent": self.progress_percent,
            "results": [a.to_dict() for a in self.results],
            "last_result": last.to_dict() if last else None,
            "reel_names": self.reel_names,
            "can_finalize": self.phase == Phase.REGISTERING and self.total >= MIN_PARTICIPANTS,
            "persistence_degraded": self.persistence_degraded,
        }
