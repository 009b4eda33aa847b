from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

CREATED = "VotingCreated"
VOTE_CAST = "VoteCast"


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True)

    voting_id: int = Field(..., ge=0)
    block_number: int = Field(..., ge=0)
    tx_hash: str = Field(..., examples=["0x5c50...e2f1"])
    timestamp: Optional[int] = None


class CreatedRecord(_Record):
    kind: Literal["VotingCreated"] = CREATED
    creator: str
    title: str
    end_time: int
    option_count: int


class VoteCastRecord(_Record):
    kind: Literal["VoteCast"] = VOTE_CAST
    voter: str
    option_index: int = Field(..., ge=0)


ActivityRecord = Annotated[
    Union[CreatedRecord, VoteCastRecord], Field(discriminator="kind")
]


def record_key(rec) -> tuple:
    """
    Uniqueness key of an activity record.
    A transaction may in theory emit several votes, so the option is part of it.
    """
    return (rec.tx_hash, rec.kind, rec.voting_id, getattr(rec, "option_index", None))


class LogEntry(BaseModel):
    """
    Raw log as returned by eth_getLogs, hex fields already parsed.
    """
    model_config = ConfigDict(frozen=True)

    address: str
    topics: List[str]
    data: str
    block_number: int
    tx_hash: str
    log_index: int


class BlockSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    hash: str
    timestamp: int
    miner: str
    tx_count: int
    base_fee: Optional[int] = None


class BlockWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    from_block: int
    to_block: int


class TransactionView(BaseModel):
    """
    One row per distinct tx hash, carrying the dominant record.
    """
    tx_hash: str
    block_number: int
    timestamp: Optional[int] = None
    record: ActivityRecord


class VotingSummary(BaseModel):
    id: int
    title: str
    creator: str
    end_time: int
    option_count: int
    is_active: bool


class OptionResult(BaseModel):
    index: int
    name: str
    votes: Optional[int] = None
    percentage: int = 0
    is_leader: bool = False


class TallySnapshot(BaseModel):
    voting_id: int
    option_count: int
    counts: Dict[int, int]
    total: int
    leader: Optional[int] = None
    percentages: Dict[int, int]


class VotingView(BaseModel):
    summary: VotingSummary
    options: List[OptionResult]
    total_votes: int
    leader: Optional[int] = None
    remaining_seconds: int
    remaining: str
    time_progress: int
    has_voted: Optional[bool] = None
    can_vote: bool = False


class ExplorerStats(BaseModel):
    events: int
    created: int
    votes: int
    unique_txs: int
    window: Optional[BlockWindow] = None
    contract: str
    contract_link: Optional[str] = None
