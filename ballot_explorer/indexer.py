"""
Bounded-range activity indexer.

Reconstructs the recent activity feed of the voting contract without scanning
its full history:

    compute_window -> EventMerger -> truncate -> TimestampEnricher -> ActivityStore

Only the last LOG_WINDOW_BLOCKS blocks are queried and only the MAX_DISPLAY
newest events are kept, so one refresh costs at most
2 log queries + MAX_DISPLAY block lookups + RECENT_BLOCKS block lookups.
"""
import asyncio
import logging
from typing import Dict, List, Sequence

from eth_abi.exceptions import DecodingError

from .contract import VOTE_CAST_TOPIC, VOTING_CREATED_TOPIC, decode_created, decode_vote_cast
from .errors import IndexingError, LedgerError
from .ledger import LedgerClient
from .models import BlockSummary, BlockWindow, record_key
from .state import ActivityStore
from .views import sort_records


def compute_window(latest_block: int, window_size: int, floor_block: int = 0) -> BlockWindow:
    """
    Block range to query: the last `window_size` blocks, narrowed to
    `floor_block` when that is more recent. Never wider than `window_size`.
    """
    if latest_block < 0 or window_size < 0 or floor_block < 0:
        raise ValueError("block numbers and window size must be non-negative")

    from_block = max(0, latest_block - window_size)
    if floor_block > from_block:
        from_block = min(floor_block, latest_block)
    return BlockWindow(from_block=from_block, to_block=latest_block)


class EventMerger:
    """
    Fetches both event kinds over one window and merges them into a single
    deterministically ordered, de-duplicated, truncated list.
    """

    def __init__(self, ledger: LedgerClient, max_display: int = 10):
        self._ledger = ledger
        self.max_display = max_display
        self._logger = logging.getLogger("EventMerger")

    async def fetch(self, address: str, window: BlockWindow) -> list:
        # collect both outcomes before raising
        results = await asyncio.gather(
            self._ledger.get_logs(address, VOTING_CREATED_TOPIC, window.from_block, window.to_block),
            self._ledger.get_logs(address, VOTE_CAST_TOPIC, window.from_block, window.to_block),
            return_exceptions=True,
        )
        failed = [res for res in results if isinstance(res, BaseException)]
        if failed:
            raise IndexingError(failed[0]) from failed[0]

        created_logs, vote_logs = results
        try:
            records = [decode_created(log) for log in created_logs]
            records += [decode_vote_cast(log) for log in vote_logs]
        except (LedgerError, DecodingError, IndexError, ValueError) as e:
            raise IndexingError(e) from e

        merged = self.merge(records)
        self._logger.debug(
            f"{len(created_logs)} created + {len(vote_logs)} votes in "
            f"[{window.from_block}, {window.to_block}] -> {len(merged)} kept"
        )
        return merged

    def merge(self, records: Sequence) -> list:
        seen = set()
        unique = []
        for rec in records:
            key = record_key(rec)
            if key in seen:
                continue
            seen.add(key)
            unique.append(rec)
        return sort_records(unique, descending=True)[: self.max_display]


class TimestampEnricher:
    """
    Attaches block timestamps to an already truncated record list.

    Lookups are sequential on purpose to avoid request bursts against the
    node. A failed lookup leaves that block's timestamp as None.
    """

    def __init__(self, ledger: LedgerClient):
        self._ledger = ledger
        self._logger = logging.getLogger("TimestampEnricher")

    async def enrich(self, records: Sequence) -> list:
        blocks: List[int] = list(dict.fromkeys(rec.block_number for rec in records))
        timestamps: Dict[int, int] = {}

        for number in blocks:
            try:
                block = await self._ledger.get_block(number)
            except LedgerError as e:
                self._logger.warning(f"timestamp for block {number} unavailable: {e}")
                continue
            timestamps[number] = block.timestamp

        return [rec.model_copy(update={"timestamp": timestamps.get(rec.block_number)}) for rec in records]


async def fetch_recent_blocks(ledger: LedgerClient, latest_block: int, count: int) -> List[BlockSummary]:
    """
    Most recent `count` headers, newest first, fetched one at a time.
    Headers that fail to load are skipped.
    """
    logger = logging.getLogger("ActivityIndexer")
    out: List[BlockSummary] = []
    for number in range(latest_block, max(latest_block - count, -1), -1):
        try:
            out.append(await ledger.get_block(number))
        except LedgerError as e:
            logger.warning(f"block {number} skipped: {e}")
    return out


class ActivityIndexer:
    """
    Runs refresh cycles and swaps their result into the store.

    Overlapping refreshes are coalesced: a refresh requested while another is
    in flight is dropped and refresh() returns False.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        store: ActivityStore,
        address: str,
        window_size: int = 5000,
        floor_block: int = 0,
        max_display: int = 10,
        recent_blocks: int = 10,
    ):
        self._ledger = ledger
        self.store = store
        self.address = address
        self.window_size = window_size
        self.floor_block = floor_block
        self.recent_blocks = recent_blocks
        self.merger = EventMerger(ledger, max_display=max_display)
        self.enricher = TimestampEnricher(ledger)
        self._in_flight = False
        self._logger = logging.getLogger("ActivityIndexer")

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def refresh(self) -> bool:
        if self._in_flight:
            self._logger.info("refresh already running, request dropped")
            return False

        self._in_flight = True
        try:
            try:
                latest = await self._ledger.get_block_number()
            except LedgerError as e:
                raise IndexingError(e) from e

            window = compute_window(latest, self.window_size, self.floor_block)
            records = await self.merger.fetch(self.address, window)
            records = await self.enricher.enrich(records)
            blocks = await fetch_recent_blocks(self._ledger, latest, self.recent_blocks)
        except IndexingError as e:
            self.store.record_failure(e.notification)
            self._logger.error(f"refresh aborted, keeping previous data: {e}")
            raise
        finally:
            self._in_flight = False

        self.store.replace(records, blocks, window)
        self._logger.info(f"refreshed: {len(records)} events, {len(blocks)} blocks, window {window.from_block}-{window.to_block}")
        return True


async def refresh_loop(indexer: ActivityIndexer, interval: float) -> None:
    """
    Periodic background refresh. Indexing failures are already recorded in the
    store; anything else is logged and recorded here. The loop only ends when
    cancelled.
    """
    logger = logging.getLogger("ActivityIndexer")
    while True:
        try:
            await indexer.refresh()
        except IndexingError:
            pass
        except Exception as e:
            logger.exception(f"unexpected refresh failure: {e}")
            indexer.store.record_failure(IndexingError(e).notification)
        await asyncio.sleep(interval)
