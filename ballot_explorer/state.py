# in-memory explorer state
import time
from typing import List, Optional, Sequence, Tuple

from .models import BlockSummary, BlockWindow


class ActivityStore:
    """
    Latest refresh result: the newest enriched activity records plus the
    newest block headers. Replaced wholesale on every successful refresh,
    never appended to, never persisted.
    """

    def __init__(self):
        self._records: Tuple = ()
        self._blocks: Tuple[BlockSummary, ...] = ()
        self.window: Optional[BlockWindow] = None
        self.last_success: float = 0.0   # time.monotonic(), 0.0 = never
        self.last_error: Optional[str] = None

    @property
    def records(self) -> List:
        return list(self._records)

    @property
    def blocks(self) -> List[BlockSummary]:
        return list(self._blocks)

    def replace(self, records: Sequence, blocks: Sequence[BlockSummary], window: Optional[BlockWindow] = None) -> None:
        self._records = tuple(records)
        self._blocks = tuple(blocks)
        self.window = window
        self.last_success = time.monotonic()
        self.last_error = None

    def record_failure(self, message: str) -> None:
        # previous records stay visible
        self.last_error = message
