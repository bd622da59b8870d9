"""
epochs that are not differenced:

* flags 2-5 (antenna moving, new site, header information, external event):
  the epoch line announces how many records follow; they are copied verbatim.
* flag 6 (cycle slip records): records in plain observation format, carrying
  slip values instead of observations. They are copied in RINEX form, and the
  (satellite, observable) pairs they name restart their differencing at the
  next regular epoch.

Neither kind touches differencing or flag history.
"""

from __future__ import annotations
import typing as T
import logging

from . import grammar
from .errors import TruncationError
from .header import ObservableTable
from .record import Epoch, EpochFlag, EpochKey
from .revision import Layout


class EventHandler:
    def __init__(self, layout: Layout, table: ObservableTable):
        self.layout = layout
        self.table = table

    @staticmethod
    def handles(key: EpochKey) -> bool:
        return key.is_event or key.flag == EpochFlag.CYCLE_SLIP

    def follow_count(self, key: EpochKey, count: int) -> int:
        """number of lines following the epoch line"""
        if key.is_event:
            return count

        return count * grammar.record_lines(self.layout, self.table)

    def read(self, lines: T.Iterator[str], key: EpochKey, count: int) -> list[str]:
        N = self.follow_count(key, count)

        follow = []
        for _ in range(N):
            try:
                follow.append(next(lines))
            except StopIteration:
                raise TruncationError(f"stream ended inside epoch flag {int(key.flag)} records: {len(follow)} of {N}")

        return follow

    def epoch(self, key: EpochKey, satellites: list[str], follow: list[str]) -> Epoch:
        if key.is_event:
            if key.flag == EpochFlag.HEADER_INFO and any(
                "TYPES OF OBSERV" in ln or "SYS / # / OBS TYPES" in ln for ln in follow
            ):
                logging.warning("observable types redefined in an event epoch, keeping the header table")
            return Epoch(key, lines=follow)

        sats, observations = grammar.parse_records(follow, self.layout, self.table, satellites)

        return Epoch(key, sats, observations)

    def lines(self, epoch: Epoch) -> list[str]:
        if epoch.key.is_event:
            return list(epoch.lines)

        return grammar.format_records(epoch, self.layout)

    @staticmethod
    def slipped(epoch: Epoch) -> list[tuple[str, int]]:
        """(satellite, observable index) pairs with a cycle slip value"""
        if epoch.flag != EpochFlag.CYCLE_SLIP:
            return []

        return [
            (sv, i)
            for sv in epoch.satellites
            for i, o in enumerate(epoch.observations[sv])
            if o.value is not None
        ]
