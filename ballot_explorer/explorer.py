# explorer endpoints: activity, transactions, recent blocks
import time

from fastapi import APIRouter, HTTPException, Request

from .config import PAGE_SIZE, PAGE_WINDOW
from .errors import IndexingError
from .formatting import explorer_link, short_address, short_hash, time_ago
from .models import CREATED, ExplorerStats
from .pagination import paginate
from .views import ActivityFilter, KindFilter, activity_counts, derive_transactions, select_activity

router = APIRouter(prefix="/explorer")


def _activity_row(rec, explorer_url: str, now: int) -> dict:
    row = rec.model_dump()
    row["age"] = time_ago(rec.timestamp, now)
    row["tx_short"] = short_hash(rec.tx_hash)
    row["actor_short"] = short_address(rec.creator if rec.kind == CREATED else rec.voter)
    row["tx_link"] = explorer_link(explorer_url, "tx", rec.tx_hash)
    row["block_link"] = explorer_link(explorer_url, "block", rec.block_number)
    return row


def _selected(request: Request, kind: KindFilter, voting_id: str, q: str, descending: bool) -> list:
    store = request.app.state.store
    flt = ActivityFilter(kind=kind, voting_id=voting_id, text=q)
    return select_activity(store.records, flt, descending)


@router.post("/reload")
async def reload(request: Request):
    indexer = request.app.state.indexer
    try:
        refreshed = await indexer.refresh()
    except IndexingError as e:
        raise HTTPException(status_code=502, detail=e.notification)
    return {"ok": True, "refreshed": refreshed, "events": len(indexer.store.records)}


@router.get("/activity")
def activity(
    request: Request,
    kind: KindFilter = "all",
    voting_id: str = "",
    q: str = "",
    descending: bool = True,
    page: int = 1,
):
    explorer_url = request.app.state.explorer_url
    now = int(time.time())
    rows = [
        _activity_row(rec, explorer_url, now)
        for rec in _selected(request, kind, voting_id, q, descending)
    ]
    return paginate(rows, page, PAGE_SIZE, PAGE_WINDOW)


@router.get("/transactions")
def transactions(
    request: Request,
    kind: KindFilter = "all",
    voting_id: str = "",
    q: str = "",
    descending: bool = True,
    page: int = 1,
):
    explorer_url = request.app.state.explorer_url
    now = int(time.time())
    rows = []
    for tx in derive_transactions(_selected(request, kind, voting_id, q, descending), descending):
        row = tx.model_dump()
        row["age"] = time_ago(tx.timestamp, now)
        row["tx_short"] = short_hash(tx.tx_hash)
        row["tx_link"] = explorer_link(explorer_url, "tx", tx.tx_hash)
        rows.append(row)
    return paginate(rows, page, PAGE_SIZE, PAGE_WINDOW)


@router.get("/blocks")
def blocks(request: Request, page: int = 1):
    explorer_url = request.app.state.explorer_url
    now = int(time.time())
    rows = []
    for b in request.app.state.store.blocks:
        row = b.model_dump()
        row["age"] = time_ago(b.timestamp, now)
        row["hash_short"] = short_hash(b.hash)
        row["miner_short"] = short_address(b.miner)
        row["block_link"] = explorer_link(explorer_url, "block", b.number)
        rows.append(row)
    return paginate(rows, page, PAGE_SIZE, PAGE_WINDOW)


@router.get("/stats")
def stats(request: Request) -> ExplorerStats:
    state = request.app.state
    contract = state.indexer.address
    return ExplorerStats(
        **activity_counts(state.store.records),
        window=state.store.window,
        contract=contract,
        contract_link=explorer_link(state.explorer_url, "address", contract) if contract else None,
    )
