"""
Per-voting vote tallies.

Each displayed voting item owns one TallyAggregator. Vote counts arrive from
independent per-option reads, in any order, and are merged last-value-wins.
Watchers live in TallyArena slots addressed by generational handles, so items
can be mounted and unmounted independently of each other.
"""
import asyncio
import logging
import time
from typing import Dict, List, NamedTuple, Optional

from .errors import LedgerError
from .formatting import format_remaining, time_progress
from .models import OptionResult, TallySnapshot, VotingSummary, VotingView


def _percent(count: int, total: int) -> int:
    # integer half-up rounding of 100 * count / total
    if total <= 0:
        return 0
    return (200 * count + total) // (2 * total)


class TallyAggregator:
    def __init__(self, voting_id: int, option_count: int):
        self.voting_id = voting_id
        self.option_count = option_count
        self._counts: Dict[int, int] = {}

    def rebind(self, voting_id: int, option_count: int) -> bool:
        """
        Point the aggregator at a (possibly different) voting item.
        Counts are discarded when the identity or the option count changed.
        """
        if voting_id == self.voting_id and option_count == self.option_count:
            return False
        self.voting_id = voting_id
        self.option_count = option_count
        self._counts = {}
        return True

    def merge(self, option_index: int, count: int) -> bool:
        if count < 0:
            raise ValueError("vote count cannot be negative")
        if not 0 <= option_index < self.option_count:
            return False
        if self._counts.get(option_index) == count:
            return False
        self._counts[option_index] = count
        return True

    @property
    def counts(self) -> Dict[int, int]:
        return dict(self._counts)

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    @property
    def leader(self) -> Optional[int]:
        # ascending option order, strict comparison: lowest index wins a tie
        best, best_votes = None, -1
        for idx in sorted(self._counts):
            if self._counts[idx] > best_votes:
                best, best_votes = idx, self._counts[idx]
        if best is None or best_votes <= 0:
            return None
        return best

    def percentage(self, option_index: int) -> int:
        return _percent(self._counts.get(option_index, 0), self.total)

    def snapshot(self) -> TallySnapshot:
        total = self.total
        return TallySnapshot(
            voting_id=self.voting_id,
            option_count=self.option_count,
            counts=self.counts,
            total=total,
            leader=self.leader,
            percentages={i: _percent(c, total) for i, c in self._counts.items()},
        )


class TallyWatcher:
    """
    Polls one voting item: summary first, then every option's count through
    its own read. A failed read leaves that option's previous value in place.
    """

    def __init__(self, reader, voting_id: int, viewer: Optional[str] = None):
        self._reader = reader
        self.voting_id = voting_id
        self.viewer = viewer
        self.summary: Optional[VotingSummary] = None
        self.option_names: List[str] = []
        self.has_voted: Optional[bool] = None
        self.aggregator = TallyAggregator(voting_id, 0)
        self.active = True
        self._logger = logging.getLogger("TallyWatcher")

    async def poll(self) -> None:
        summary = await self._reader.get_voting(self.voting_id)
        if not self.active:
            return
        self.summary = summary
        if self.aggregator.rebind(summary.id, summary.option_count):
            self.option_names = []

        if not self.option_names:
            try:
                self.option_names = await self._reader.get_options(self.voting_id)
            except LedgerError as e:
                self._logger.warning(f"voting {self.voting_id}: option names unavailable: {e}")

        if self.viewer:
            try:
                self.has_voted = await self._reader.has_voted(self.voting_id, self.viewer)
            except LedgerError as e:
                self._logger.warning(f"voting {self.voting_id}: has_voted unavailable: {e}")

        option_count = summary.option_count
        reads = [self._read_option(i) for i in range(option_count)]
        for arrival in asyncio.as_completed(reads):
            result = await arrival
            if result is None or not self.active:
                continue
            idx, count = result
            # the item may have been rebound while this read was in flight
            if self.aggregator.option_count == option_count:
                self.aggregator.merge(idx, count)

    async def _read_option(self, option_index: int):
        try:
            return option_index, await self._reader.vote_count(self.voting_id, option_index)
        except LedgerError as e:
            self._logger.warning(f"voting {self.voting_id} option {option_index}: read failed: {e}")
            return None

    def view(self, now: Optional[int] = None) -> Optional[VotingView]:
        if self.summary is None:
            return None
        now = int(time.time()) if now is None else now
        agg = self.aggregator
        leader = agg.leader
        counts = agg.counts

        options = [
            OptionResult(
                index=i,
                name=self.option_names[i] if i < len(self.option_names) else f"Option {i + 1}",
                votes=counts.get(i),
                percentage=agg.percentage(i),
                is_leader=leader == i,
            )
            for i in range(agg.option_count)
        ]
        remaining = max(self.summary.end_time - now, 0)
        can_vote = self.summary.is_active and self.viewer is not None and self.has_voted is False
        return VotingView(
            summary=self.summary,
            options=options,
            total_votes=agg.total,
            leader=leader,
            remaining_seconds=remaining,
            remaining=format_remaining(remaining),
            time_progress=time_progress(self.summary.end_time, now),
            has_voted=self.has_voted,
            can_vote=can_vote,
        )


class WatchHandle(NamedTuple):
    slot: int
    generation: int


class TallyArena:
    """
    Slot storage for mounted watchers. A handle is a slot index plus the
    slot's generation; freed slots are reused with a bumped generation, so a
    handle from an earlier mount never resolves to a later watcher.
    """

    def __init__(self, reader):
        self._reader = reader
        self._slots: List[Optional[TallyWatcher]] = []
        self._generations: List[int] = []
        self._free: List[int] = []
        self._logger = logging.getLogger("TallyArena")

    def mount(self, voting_id: int, viewer: Optional[str] = None) -> WatchHandle:
        watcher = TallyWatcher(self._reader, voting_id, viewer)
        if self._free:
            slot = self._free.pop()
            self._slots[slot] = watcher
        else:
            slot = len(self._slots)
            self._slots.append(watcher)
            self._generations.append(0)
        return WatchHandle(slot, self._generations[slot])

    def get(self, handle: WatchHandle) -> Optional[TallyWatcher]:
        slot, generation = handle
        if 0 <= slot < len(self._slots) and self._generations[slot] == generation:
            return self._slots[slot]
        return None

    def unmount(self, handle: WatchHandle) -> bool:
        watcher = self.get(handle)
        if watcher is None:
            return False
        # in-flight reads finish on their own and are ignored
        watcher.active = False
        self._slots[handle.slot] = None
        self._generations[handle.slot] += 1
        self._free.append(handle.slot)
        return True

    def watchers(self) -> List[TallyWatcher]:
        return [w for w in self._slots if w is not None]

    def __len__(self) -> int:
        return len(self.watchers())

    async def poll_all(self) -> None:
        """
        Poll every mounted watcher concurrently. One watcher's failure never
        stops the others or the caller's loop.
        """
        watchers = self.watchers()
        results = await asyncio.gather(*(w.poll() for w in watchers), return_exceptions=True)
        for watcher, res in zip(watchers, results):
            if isinstance(res, LedgerError):
                self._logger.warning(f"voting {watcher.voting_id}: poll failed: {res}")
            elif isinstance(res, Exception):
                self._logger.error(f"voting {watcher.voting_id}: unexpected poll failure: {res!r}", exc_info=res)


async def tally_poll_loop(arena: TallyArena, interval: float) -> None:
    while True:
        await arena.poll_all()
        await asyncio.sleep(interval)
