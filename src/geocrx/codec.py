"""
CRINEX (Hatanaka compact RINEX) decoder and encoder.

Both run the same state machine over one session

    EXPECT_HEADER -> EXPECT_EPOCH <-> {REGULAR_EPOCH, EVENT_EPOCH} -> END

and share the per session state: the last regular epoch line, the
differencing of observations and receiver clock, and the LLI / SSI history.

A regular epoch on the wire is

    epoch line      written in full (init marker) or character-differenced
    clock line      empty, or a differenced receiver clock offset
    one data line per satellite, in epoch line order:
        one token per observable separated by a blank (empty if missing),
        then, if any flag changed, a blank and the flag difference text

Decoding is strictly sequential: a CrinexDecoder is a one-shot iterator.
"""

from __future__ import annotations
import typing as T
import logging
from datetime import datetime, timezone
from enum import Enum, auto

from . import grammar
from .diff import MAX_ORDER, Differencer
from .errors import GrammarError, TruncationError
from .events import EventHandler
from .flags import FlagCodec, diff_text, repair_text
from .header import ObservableTable, crinex_lines, obsheader
from .record import Epoch, EpochKey, Observation
from .revision import CRINEX_VERSIONS, Layout, layout

__version__ = "1.0.0"

CLOCK = "clock"


class State(Enum):
    EXPECT_HEADER = auto()
    EXPECT_EPOCH = auto()
    REGULAR_EPOCH = auto()
    EVENT_EPOCH = auto()
    END = auto()


class Session(T.NamedTuple):
    """immutable context of one file, safe to share between threads"""

    layout: Layout
    table: ObservableTable
    max_order: int
    header: dict[str, T.Any]

    @classmethod
    def from_header(cls, hdr: dict[str, T.Any], max_order: int = 3) -> Session:
        return cls(layout(hdr["revision"]), ObservableTable.from_header(hdr), max_order, hdr)


class LineReader:
    """line iterator that counts lines and can look one line ahead"""

    def __init__(self, lines: T.Iterable[str]):
        self._it = iter(lines)
        self._next: str | None = None
        self.lineno = 0

    def __iter__(self) -> LineReader:
        return self

    def __next__(self) -> str:
        if self._next is not None:
            ln, self._next = self._next, None
        else:
            ln = next(self._it).rstrip("\r\n")
        self.lineno += 1
        return ln

    def peek(self) -> str | None:
        if self._next is None:
            try:
                self._next = next(self._it).rstrip("\r\n")
            except StopIteration:
                return None
        return self._next


def split_data_line(ln: str, nobs: int) -> tuple[list[str], str]:
    """tokens of nobs observables and the flag difference text"""
    tokens = []
    pos = 0
    for _ in range(nobs):
        if pos >= len(ln):
            tokens.append("")
        elif ln[pos] == " ":
            tokens.append("")
            pos += 1
        else:
            end = ln.find(" ", pos)
            if end < 0:
                end = len(ln)
            tokens.append(ln[pos:end])
            pos = end + 1

    return tokens, ln[pos:]


def join_data_line(tokens: T.Sequence[str], flags: str) -> str:
    ln = " ".join(tokens)
    if flags:
        return f"{ln} {flags}"

    return ln.rstrip()


class _Codec:
    """state shared by decoder and encoder"""

    def __init__(self, max_order: int):
        self.max_order = max_order
        self.state = State.EXPECT_HEADER
        self.session: Session | None = None
        self.values = Differencer(max_order)
        self.clock = Differencer(max_order)
        self.flags = FlagCodec()
        self.epoch_line = ""
        self._last: EpochKey | None = None
        self._sats: set[str] = set()

    def _start(self, hdr: dict[str, T.Any]):
        if "crinex" in hdr and CRINEX_VERSIONS[hdr["crinex"]] != min(hdr["revision"], 3):
            raise GrammarError(f"CRINEX {hdr['crinex']} cannot carry RINEX {hdr['version']}")

        self.session = Session.from_header(hdr, self.max_order)
        self.events = EventHandler(self.session.layout, self.session.table)
        self.state = State.EXPECT_EPOCH

    def _reset(self):
        """forget all differencing, flags and the last epoch line"""
        self.values.clear()
        self.clock.clear()
        self.flags.clear()
        self.epoch_line = ""
        self._sats = set()

    def _rejoin(self, satellites: T.Sequence[str]):
        """satellites absent from the previous regular epoch compare their flags against blank"""
        for sv in satellites:
            if sv not in self._sats:
                self.flags.discard(sv)
        self._sats = set(satellites)

    def _check_order(self, key: EpochKey):
        if key.time is None:
            return
        if self._last is not None and key.time < self._last.time:
            logging.warning(f"epoch {key.time.to_datetime()} is before {self._last.time.to_datetime()}")
        self._last = key

    def _nobs(self, sv: str) -> int:
        try:
            return self.session.table.count(sv[0])
        except KeyError as e:
            raise GrammarError(str(e), revision=self.session.layout.revision)


class CrinexDecoder(_Codec):
    """
    pull decoder: iterate to get one reconstructed Epoch per step

    Parameters
    ----------

    lines: iterable of str
        CRINEX text lines, starting with the CRINEX header
    max_order: int
        largest differencing order accepted in restart markers. Files do not
        record it, the default accepts every order CRINEX tools write
    strict: bool
        if False, a malformed epoch is logged and decoding resumes at the next
        epoch written in full; otherwise GrammarError ends decoding
    """

    def __init__(self, lines: T.Iterable[str], *, max_order: int = MAX_ORDER, strict: bool = True):
        super().__init__(max_order)
        self._lines = LineReader(lines)
        self.strict = strict

    @property
    def header(self) -> dict[str, T.Any]:
        if self.state is State.EXPECT_HEADER:
            self._read_header()
        return self.session.header

    @property
    def lineno(self) -> int:
        return self._lines.lineno

    def __iter__(self) -> CrinexDecoder:
        return self

    def __next__(self) -> Epoch:
        if self.state is State.EXPECT_HEADER:
            self._read_header()

        while self.state is not State.END:
            try:
                epoch = self._read_epoch()
            except GrammarError as e:
                if e.lineno is None:
                    e.lineno = self._lines.lineno
                if e.revision is None:
                    e.revision = self.session.layout.revision
                if self.strict:
                    self.state = State.END
                    raise
                logging.error(f"{e}  skipping to next complete epoch")
                self._resync()
                continue
            except TruncationError:
                self.state = State.END
                raise

            if epoch is not None:
                return epoch

        raise StopIteration

    def _read_header(self):
        try:
            hdr = obsheader(self._lines)
        except GrammarError as e:
            e.lineno = self._lines.lineno
            self.state = State.END
            raise

        if "crinex" not in hdr:
            self.state = State.END
            raise ValueError("not a Compact RINEX (Hatanaka) file")

        self._start(hdr)

    def _need(self, what: str) -> str:
        try:
            return next(self._lines)
        except StopIteration:
            raise TruncationError(f"stream ended after line {self._lines.lineno}, expecting {what}")

    def _read_epoch(self) -> Epoch | None:
        L = self.session.layout

        try:
            ln = next(self._lines)
        except StopIteration:
            self.state = State.END
            return None

        if not ln.strip() and self._lines.peek() is None:
            self.state = State.END
            return None

        full = ln.startswith(L.init_marker)
        if full:
            line = L.time_blank[0] + ln[1:]
        elif not self.epoch_line:
            raise GrammarError("first epoch line must be written in full")
        else:
            line = repair_text(self.epoch_line, ln)
        line = line.rstrip()

        key, count, sats = grammar.parse_crinex_epoch(line, L)
        self._check_order(key)

        if self.events.handles(key):
            self.state = State.EVENT_EPOCH
            epoch = self.events.epoch(key, sats, self.events.read(self._lines, key, count))
            self.state = State.EXPECT_EPOCH
            return epoch

        self.state = State.REGULAR_EPOCH
        if full:
            self._reset()
        self.epoch_line = line

        tok = self._need("receiver clock line").strip()
        clock = self.clock.decompress(CLOCK, tok) if tok else None

        self._rejoin(sats)
        observations = {}
        for sv in sats:
            observations[sv] = self._satellite(sv, self._need(f"data of {sv}"))

        self.state = State.EXPECT_EPOCH

        return Epoch(key, sats, observations, clock)

    def _satellite(self, sv: str, ln: str) -> list[Observation]:
        nobs = self._nobs(sv)
        tokens, flagdiff = split_data_line(ln, nobs)
        flags = self.flags.decompress(sv, flagdiff, 2 * nobs)

        obs = []
        for i, tok in enumerate(tokens):
            value = self.values.decompress((sv, i), tok) if tok else None
            obs.append(Observation(value, flags[2 * i], flags[2 * i + 1]))

        return obs

    def _resync(self):
        """drop all state and advance to the next regular epoch line written in full"""
        L = self.session.layout
        self._reset()
        self.state = State.EXPECT_EPOCH

        while True:
            ln = self._lines.peek()
            if ln is None:
                self.state = State.END
                return

            if ln.startswith(L.init_marker):
                try:
                    key, _ = grammar.parse_epoch_line(L.time_blank[0] + ln[1:], L)
                except GrammarError:
                    pass
                else:
                    if not self.events.handles(key):
                        return
            next(self._lines)


class CrinexEncoder(_Codec):
    """
    push encoder: give one Epoch at a time, get the CRINEX lines to write.
    The first call to encode() also returns the CRINEX header.

    Parameters
    ----------

    header: dict
        Observation RINEX header from obsheader()
    max_order: int
        differencing order 1..5, 3 unless you have a reason
    reset_every: int
        write every n-th regular epoch in full, restarting all differencing
        (points where a damaged file can be resumed). 0: only the first epoch
    reset_after_gap: bool
        restart the differencing of an observable that was missing in the
        previous regular epoch, instead of resuming its history
    program, date:
        written to the CRINEX PROG / DATE line
    """

    def __init__(
        self,
        header: dict[str, T.Any],
        *,
        max_order: int = 3,
        reset_every: int = 0,
        reset_after_gap: bool = True,
        program: str = None,
        date: datetime | str = None,
    ):
        super().__init__(max_order)
        self.reset_every = reset_every
        self.reset_after_gap = reset_after_gap
        self.program = program or f"geocrx {__version__}"
        self.date = date or datetime.now(timezone.utc)

        hdr = dict(header)
        hdr["crinex"] = layout(hdr["revision"]).crinex
        self._header = hdr

        self._nregular = 0
        self._present: set[tuple[str, int]] = set()
        self._clock_present = False
        self._pending: set[tuple[str, int]] = set()

    def header_lines(self) -> list[str]:
        if self.state is not State.EXPECT_HEADER:
            raise RuntimeError("CRINEX header was already written")

        self._start(self._header)

        return crinex_lines(self._header["crinex"], self.program, self.date) + list(self._header["lines"])

    def encode(self, epoch: Epoch) -> list[str]:
        out = []
        if self.state is State.EXPECT_HEADER:
            out += self.header_lines()
        elif self.state is State.END:
            raise RuntimeError("encoder is closed")

        self._check_order(epoch.key)

        if self.events.handles(epoch.key):
            self.state = State.EVENT_EPOCH
            out += self._event(epoch)
        else:
            self.state = State.REGULAR_EPOCH
            out += self._regular(epoch)

        self.state = State.EXPECT_EPOCH

        return out

    def close(self):
        self.state = State.END

    def _event(self, epoch: Epoch) -> list[str]:
        L = self.session.layout
        follow = self.events.lines(epoch)
        count = len(follow) if epoch.key.is_event else len(epoch.satellites)
        ln = grammar.initialized(grammar.format_crinex_epoch(epoch.key, epoch.satellites, L, count), L)

        self._pending.update(self.events.slipped(epoch))

        return [ln.rstrip()] + follow

    def _regular(self, epoch: Epoch) -> list[str]:
        L = self.session.layout

        full = not self.epoch_line or (self.reset_every > 0 and self._nregular % self.reset_every == 0)
        self._nregular += 1

        line = grammar.format_crinex_epoch(epoch.key, epoch.satellites, L).rstrip()
        if full:
            self._reset()
            self._present.clear()
            self._clock_present = False
            out = [grammar.initialized(line, L)]
        else:
            out = [diff_text(self.epoch_line, line)]
        self.epoch_line = line

        # %% receiver clock offset
        if epoch.clock is None:
            out.append("")
        else:
            out.append(self.clock.compress(CLOCK, epoch.clock, self.reset_after_gap and not self._clock_present))
        self._clock_present = epoch.clock is not None

        # %% satellites
        present = set()
        self._rejoin(epoch.satellites)
        for sv in epoch.satellites:
            obs = epoch.observations[sv]
            nobs = self._nobs(sv)
            if len(obs) != nobs:
                raise GrammarError(
                    f"{sv} has {len(obs)} observations, header declares {nobs}",
                    revision=L.revision,
                )

            tokens = []
            for i, o in enumerate(obs):
                if o.value is None:
                    tokens.append("")
                    continue

                k = (sv, i)
                present.add(k)
                reset = k in self._pending or (self.reset_after_gap and k not in self._present)
                tokens.append(self.values.compress(k, o.value, reset))

            flagdiff = self.flags.compress(sv, "".join((o.lli or " ") + (o.ssi or " ") for o in obs))
            out.append(join_data_line(tokens, flagdiff))

        self._present = present
        self._pending -= present

        return out
