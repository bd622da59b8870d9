"""
character repeat suppression, used for the LLI / SSI flags of each satellite
and for the epoch line.

Against the previous text, each character is written as
    " "  unchanged
    "&"  became blank
    c    anything else
and trailing blanks are dropped.
"""

from __future__ import annotations

from .errors import GrammarError


def diff_text(old: str, new: str) -> str:
    N = max(len(old), len(new))
    old = old.ljust(N)
    new = new.ljust(N)

    out = []
    for o, n in zip(old, new):
        if n == o:
            out.append(" ")
        elif n == " ":
            out.append("&")
        else:
            out.append(n)

    return "".join(out).rstrip()


def repair_text(old: str, diff: str) -> str:
    chars = list(old.ljust(len(diff)))

    for i, c in enumerate(diff):
        if c == " ":
            continue
        chars[i] = " " if c == "&" else c

    return "".join(chars).rstrip()


class FlagCodec:
    """
    LLI / SSI history per satellite.

    Character 2*i is the LLI, 2*i+1 the SSI of observable i.
    A satellite seen for the first time, or again after missing from the
    previous epoch, starts from all blank flags.
    """

    def __init__(self):
        self._history: dict[str, str] = {}

    def __contains__(self, sv: str) -> bool:
        return sv in self._history

    def snapshot(self) -> dict[str, str]:
        return dict(self._history)

    def discard(self, sv: str):
        self._history.pop(sv, None)

    def clear(self):
        self._history.clear()

    def compress(self, sv: str, flags: str) -> str:
        old = self._history.get(sv, "")
        self._history[sv] = flags.rstrip()

        return diff_text(old, flags)

    def decompress(self, sv: str, diff: str, width: int) -> str:
        new = repair_text(self._history.get(sv, ""), diff)
        if len(new) > width:
            raise GrammarError(f"{sv}: {len(new)} flag characters for {width // 2} observables")

        self._history[sv] = new

        return new.ljust(width)
