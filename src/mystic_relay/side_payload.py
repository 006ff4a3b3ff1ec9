from __future__ import annotations

import random
from typing import Any

LUCKY_NUMBERS_FIELD = "luckyNumbers"


class LuckyNumberGenerator:
    """Produces the side payload attached to every final frame."""

    def __init__(self, count: int = 5, upper: int = 100, rng: random.Random | None = None):
        self._count = max(0, count)
        self._upper = max(1, upper)
        self._rng = rng or random.Random()

    def __call__(self) -> dict[str, Any]:
        return {LUCKY_NUMBERS_FIELD: [self._rng.randrange(self._upper) for _ in range(self._count)]}


def describe_side_payload(side_payload: dict[str, Any]) -> str | None:
    numbers = side_payload.get(LUCKY_NUMBERS_FIELD)
    if not isinstance(numbers, list):
        return None
    return f"Your lucky numbers for this reading are: {', '.join(str(n) for n in numbers)}"
