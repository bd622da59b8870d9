"""
Hatanaka arithmetic differencing of scaled integer observations.

Each (satellite, observable) keeps the levels [u0, u1, ..., uk]:
u0 the last value, ui the last i-th order difference, k <= max order.
A new value v raises the order by one (up to the maximum) and
    u0' = v,  ui' = u(i-1)' - u(i-1)
where uk' is what is written. Decoding runs the same chain backwards.

A written token is either the difference "-123" or a restart "3&20000000000"
meaning: forget the history, the value is 20000000000 and the differencing
order grows up to 3 from here on.
"""

from __future__ import annotations
import typing as T
import logging

from .errors import GrammarError, StateError

Key = T.Hashable

# highest differencing order of the CRINEX tools
MAX_ORDER = 5


class DifferenceState:
    __slots__ = ("max_order", "order", "levels")

    def __init__(self, value: int, max_order: int):
        self.max_order = max_order
        self.order = 0
        self.levels = [value]

    def __repr__(self) -> str:
        return f"DifferenceState(order={self.order}/{self.max_order}, levels={self.levels})"

    def push(self, value: int) -> int:
        """encode: store value, return the difference to write"""
        order = min(self.order + 1, self.max_order)

        new = [value]
        for i in range(1, order + 1):
            new.append(new[i - 1] - self.levels[i - 1])

        self.levels = new
        self.order = order

        return new[order]

    def pull(self, delta: int) -> int:
        """decode: apply the written difference, return the value"""
        order = min(self.order + 1, self.max_order)

        new = [0] * (order + 1)
        new[order] = delta
        for i in range(order - 1, -1, -1):
            new[i] = self.levels[i] + new[i + 1]

        self.levels = new
        self.order = order

        return new[0]


def parse_token(tok: str) -> tuple[int | None, int]:
    """
    Returns
    -------

    order: int or None
        order of a restart "k&value", None for a plain difference
    number: int
        value of a restart, or the difference
    """
    head, amp, tail = tok.partition("&")
    try:
        if amp:
            return int(head), int(tail)
        return None, int(tok)
    except ValueError:
        raise GrammarError(f"bad compressed value {tok!r}")


class Differencer:
    """
    keyed arena of DifferenceState, owned by one encode or decode session
    """

    def __init__(self, max_order: int = 3):
        if not 1 <= max_order <= MAX_ORDER:
            raise ValueError(f"differencing order must be in 1..{MAX_ORDER}")

        self.max_order = max_order
        self._states: dict[Key, DifferenceState] = {}

    def __contains__(self, key: Key) -> bool:
        return key in self._states

    def __len__(self) -> int:
        return len(self._states)

    def get(self, key: Key) -> DifferenceState | None:
        return self._states.get(key)

    def snapshot(self) -> dict[Key, tuple[int, tuple[int, ...]]]:
        return {k: (s.order, tuple(s.levels)) for k, s in self._states.items()}

    def discard(self, key: Key):
        self._states.pop(key, None)

    def clear(self):
        self._states.clear()

    def compress(self, key: Key, value: int, reset: bool = False) -> str:
        state = self._states.get(key)

        if reset or state is None:
            self._states[key] = DifferenceState(value, self.max_order)
            return f"{self.max_order}&{value}"

        return str(state.push(value))

    def decompress(self, key: Key, token: str) -> int:
        order, number = parse_token(token)

        try:
            return self._decompress(key, order, number)
        except StateError as e:
            logging.warning(f"{e}, restarting {key} from {number}")
            self._states[key] = DifferenceState(number, self.max_order)
            return number

    def _decompress(self, key: Key, order: int | None, number: int) -> int:
        if order is not None:
            if not 1 <= order <= self.max_order:
                raise StateError(f"restart order {order} outside 1..{self.max_order}")
            self._states[key] = DifferenceState(number, order)
            return number

        state = self._states.get(key)
        if state is None:
            raise StateError("difference without prior state")

        return state.pull(number)
