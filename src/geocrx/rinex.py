"""
plain Observation RINEX 2/3/4 epoch reader
"""

from __future__ import annotations
import typing as T
import logging

from . import grammar
from .codec import LineReader, Session
from .errors import GrammarError, TruncationError
from .header import obsheader
from .record import Epoch


class RinexReader:
    """
    iterate over the epochs of an Observation RINEX text stream.

    With strict=False, a malformed epoch is logged and skipped, as are
    unparseable lines between epochs.
    """

    def __init__(self, lines: T.Iterable[str], *, strict: bool = True):
        self._lines = LineReader(lines)
        self.strict = strict
        self.session: Session | None = None

    @property
    def header(self) -> dict[str, T.Any]:
        if self.session is None:
            self._read_header()
        return self.session.header

    def _read_header(self):
        hdr = obsheader(self._lines)
        if "crinex" in hdr:
            raise ValueError("Compact RINEX (Hatanaka) must be read with CrinexDecoder")

        self.session = Session.from_header(hdr)

    def __iter__(self) -> RinexReader:
        return self

    def __next__(self) -> Epoch:
        if self.session is None:
            self._read_header()

        L = self.session.layout
        table = self.session.table

        for ln in self._lines:
            if not ln.strip():
                continue

            lineno = self._lines.lineno
            try:
                N = grammar.epoch_block_size(ln, L, table)
            except GrammarError as e:
                e.lineno = lineno
                if self.strict:
                    raise
                logging.debug(f"skipping line {lineno}: {ln}")
                continue

            block = [ln]
            for _ in range(N - 1):
                try:
                    block.append(next(self._lines))
                except StopIteration:
                    raise TruncationError(f"stream ended inside the epoch starting on line {lineno}")

            try:
                return grammar.parse_epoch(block, L, table)
            except GrammarError as e:
                e.lineno = lineno
                if self.strict:
                    raise
                logging.error(f"{e}  skipping epoch")

        raise StopIteration
