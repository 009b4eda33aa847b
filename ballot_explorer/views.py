"""
Pure filter / sort / derive functions over activity records.

None of these functions mutate their input; for the same input they always
return the same output.
"""
import re
from typing import Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel

from .models import CREATED, VOTE_CAST, TransactionView

_NON_NEGATIVE_INT = re.compile(r"[0-9]+")

KindFilter = Literal["all", "VotingCreated", "VoteCast"]


class ActivityFilter(BaseModel):
    kind: KindFilter = "all"
    voting_id: str = ""
    text: str = ""


def normalize_text(s: str) -> str:
    return s.strip().casefold()


def parse_voting_id(text: str) -> Optional[int]:
    """
    Parse a voting id filter. Returns None for anything that is not a
    non-negative base-10 integer.
    """
    text = text.strip()
    if not _NON_NEGATIVE_INT.fullmatch(text):
        return None
    return int(text)


def _searchable(rec) -> List[str]:
    option = getattr(rec, "option_index", None)
    return [
        rec.tx_hash,
        getattr(rec, "title", ""),
        getattr(rec, "creator", ""),
        getattr(rec, "voter", ""),
        str(rec.voting_id),
        "" if option is None else str(option),
        str(rec.block_number),
    ]


def sort_key(rec, descending: bool = True) -> tuple:
    # tx hash always ascending on ties, whatever the block direction
    return (-rec.block_number if descending else rec.block_number, rec.tx_hash)


def sort_records(records: Sequence, descending: bool = True) -> list:
    return sorted(records, key=lambda r: sort_key(r, descending))


def filter_records(records: Sequence, flt: ActivityFilter) -> list:
    out = list(records)

    if flt.kind != "all":
        out = [r for r in out if r.kind == flt.kind]

    if flt.voting_id.strip():
        wanted = parse_voting_id(flt.voting_id)
        if wanted is None:
            return []
        out = [r for r in out if r.voting_id == wanted]

    q = normalize_text(flt.text)
    if q:
        out = [r for r in out if any(q in normalize_text(field) for field in _searchable(r))]

    return out


def select_activity(records: Sequence, flt: ActivityFilter, descending: bool = True) -> list:
    return sort_records(filter_records(records, flt), descending)


def derive_transactions(records: Sequence, descending: bool = True) -> List[TransactionView]:
    """
    Collapse records into one row per tx hash.
    When a hash carries both kinds, the VotingCreated record wins.
    """
    chosen: Dict[str, object] = {}
    for rec in records:
        current = chosen.get(rec.tx_hash)
        if current is None or (current.kind == VOTE_CAST and rec.kind == CREATED):
            chosen[rec.tx_hash] = rec

    rows = sort_records(chosen.values(), descending)
    return [
        TransactionView(tx_hash=r.tx_hash, block_number=r.block_number, timestamp=r.timestamp, record=r)
        for r in rows
    ]


def activity_counts(records: Sequence) -> Dict[str, int]:
    return {
        "events": len(records),
        "created": sum(1 for r in records if r.kind == CREATED),
        "votes": sum(1 for r in records if r.kind == VOTE_CAST),
        "unique_txs": len({r.tx_hash for r in records}),
    }
