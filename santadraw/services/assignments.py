from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Sequence

from ..errors import DuplicateParticipant, InsufficientParticipants

MIN_PARTICIPANTS = 3
MAX_REJECTION_RETRIES = 1000

CHAIN = "chain"
REJECTION = "rejection"


@dataclass(frozen=True)
class Assignment:
    """drawer gives a gift to drawn."""
    drawer: str
    drawn: str

    def to_dict(self) -> dict[str, str]:
        return {"drawer": self.drawer, "drawn": self.drawn}

    @classmethod
    def from_dict(cls, data: dict) -> "Assignment":
        return cls(drawer=str(data["drawer"]), drawn=str(data["drawn"]))


def _check_roster(roster: Sequence[str]) -> list[str]:
    names = list(roster)
    if len(names) < MIN_PARTICIPANTS:
        raise InsufficientParticipants(
            f"Need at least {MIN_PARTICIPANTS} participants, got {len(names)}."
        )
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise DuplicateParticipant(f"Participant listed twice: {name!r}")
        seen.add(name)
    return names


def random_circular_chain(roster: Sequence[str], rng: random.Random | None = None) -> list[Assignment]:
    """
    Shuffle the roster and let each person draw the next one, the last
    person closing the circle by drawing the first.

    The result is a single N-cycle, so nobody draws themselves. The list is
    in draw order: whoever was drawn is the next to draw.
    """
    names = _check_roster(roster)
    rng = rng or random.Random()

    # random.shuffle is Fisher-Yates
    rng.shuffle(names)
    n = len(names)
    return [Assignment(names[i], names[(i + 1) % n]) for i in range(n)]


def rejection_derangement(
    roster: Sequence[str],
    rng: random.Random | None = None,
    max_retries: int = MAX_REJECTION_RETRIES,
) -> list[Assignment]:
    """
    Uniform over all derangements: shuffle receivers until no one keeps
    themselves. After max_retries falls back to a rotation by one.

    Drawers are taken in a shuffled order independent of who was drawn.
    """
    names = _check_roster(roster)
    rng = rng or random.Random()

    givers = names[:]
    rng.shuffle(givers)
    receivers = givers[:]

    for _ in range(max_retries):
        rng.shuffle(receivers)
        if all(g != r for g, r in zip(givers, receivers)):
            break
    else:
        receivers = givers[1:] + givers[:1]

    return [Assignment(g, r) for g, r in zip(givers, receivers)]


STRATEGIES = {
    CHAIN: random_circular_chain,
    REJECTION: rejection_derangement,
}


def generate(
    roster: Sequence[str],
    strategy: str = CHAIN,
    rng: random.Random | None = None,
    seed: int | None = None,
) -> list[Assignment]:
    """Full assignment set for the roster, ordered by draw order."""
    try:
        fn = STRATEGIES[strategy]
    except KeyError:
        raise ValueError(f"Unknown draw strategy: {strategy!r}") from None
    if rng is None and seed is not None:
        rng = random.Random(seed)
    return fn(roster, rng)


def is_derangement(roster: Sequence[str], assignments: Sequence[Assignment]) -> bool:
    """True when every name draws and is drawn exactly once, never itself."""
    names = list(roster)
    if len(assignments) != len(names):
        return False
    drawers = [a.drawer for a in assignments]
    drawn = [a.drawn for a in assignments]
    expected = sorted(names)
    return (
        sorted(drawers) == expected
        and sorted(drawn) == expected
        and all(a.drawer != a.drawn for a in assignments)
    )
