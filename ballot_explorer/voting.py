# voting list, per-item tallies, watchers and write intents
import logging
from typing import Annotated, Literal, Optional

from eth_utils import is_address
from fastapi import APIRouter, HTTPException, Path, Request

from .config import VOTING_PAGE_STEP
from .errors import LedgerError
from .intents import CastVoteIntent, CreateVotingIntent
from .tally import TallyWatcher, WatchHandle

router = APIRouter()
logger = logging.getLogger("VotingRoutes")

# uint256 ids only
VotingId = Annotated[int, Path(ge=0, lt=2 ** 256)]


def ordered_ids(total: int, order: str) -> list:
    ids = list(range(total))
    return ids[::-1] if order == "recent" else ids


def matches(summary, q: str, status: str) -> bool:
    q = q.strip().casefold()
    if q and q not in summary.title.casefold():
        return False
    if status == "active" and not summary.is_active:
        return False
    if status == "closed" and summary.is_active:
        return False
    return True


def checked_viewer(viewer: Optional[str]) -> Optional[str]:
    if viewer is None:
        return None
    viewer = viewer.strip()
    if not is_address(viewer):
        raise HTTPException(status_code=422, detail=f"Invalid viewer address: {viewer}")
    return viewer


@router.get("/votings")
async def list_votings(
    request: Request,
    order: Literal["recent", "oldest"] = "recent",
    visible: int = VOTING_PAGE_STEP,
    q: str = "",
    status: Literal["all", "active", "closed"] = "all",
    viewer: Optional[str] = None,
):
    """
    Load-more listing: the first `visible` ids in the chosen order are read,
    then filtered by title and status. `is_owner` tells whether the viewer
    owns the contract.
    """
    viewer = checked_viewer(viewer)
    reader = request.app.state.voting_reader
    try:
        total = await reader.voting_count()
    except LedgerError as e:
        raise HTTPException(status_code=502, detail=str(e))

    try:
        owner = await reader.owner()
    except LedgerError as e:
        logger.warning(f"contract owner unavailable: {e}")
        owner = None

    ids = ordered_ids(total, order)
    visible = min(max(visible, 0), total)
    summaries = await reader.get_votings(ids[:visible])
    items = [s for s in summaries if matches(s, q, status)]
    return {
        "total": total,
        "visible": visible,
        "next_visible": min(visible + VOTING_PAGE_STEP, total),
        "owner": owner,
        "is_owner": bool(viewer and owner and viewer.lower() == owner.lower()),
        "items": items,
    }


@router.get("/votings/{voting_id}")
async def get_voting(request: Request, voting_id: VotingId, viewer: Optional[str] = None):
    watcher = TallyWatcher(request.app.state.voting_reader, voting_id, checked_viewer(viewer))
    try:
        await watcher.poll()
    except LedgerError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return watcher.view()


async def _submit(action: str, call):
    try:
        tx = await call
    except Exception as e:
        logger.warning(f"{action} rejected: {e}")
        raise HTTPException(status_code=502, detail=f"Transaction failed: {e}")
    return {"ok": True, "tx_hash": tx}


@router.post("/votings")
async def create_voting(request: Request, intent: CreateVotingIntent):
    submitter = request.app.state.submitter
    if submitter is None:
        raise HTTPException(status_code=503, detail="No write submitter configured")
    return await _submit(
        "create voting",
        submitter.create_voting(intent.title, intent.options, intent.duration_seconds),
    )


@router.post("/vote")
async def cast_vote(request: Request, intent: CastVoteIntent):
    submitter = request.app.state.submitter
    if submitter is None:
        raise HTTPException(status_code=503, detail="No write submitter configured")
    return await _submit("vote", submitter.cast_vote(intent.voting_id, intent.option_index))


@router.post("/watch/{voting_id}")
async def watch(request: Request, voting_id: VotingId, viewer: Optional[str] = None):
    arena = request.app.state.arena
    handle = arena.mount(voting_id, checked_viewer(viewer))
    body = {"slot": handle.slot, "generation": handle.generation}
    try:
        await arena.get(handle).poll()
    except LedgerError as e:
        # the background loop retries on its next pass
        return {**body, "view": None, "error": str(e)}
    return {**body, "view": arena.get(handle).view()}


@router.get("/watch/{slot}/{generation}")
def watched(request: Request, slot: int, generation: int):
    watcher = request.app.state.arena.get(WatchHandle(slot, generation))
    if watcher is None:
        raise HTTPException(status_code=404, detail=f"No watcher {slot}/{generation}")
    return {"slot": slot, "generation": generation, "view": watcher.view()}


@router.delete("/watch/{slot}/{generation}")
def unwatch(request: Request, slot: int, generation: int):
    if not request.app.state.arena.unmount(WatchHandle(slot, generation)):
        raise HTTPException(status_code=404, detail=f"No watcher {slot}/{generation}")
    return {"ok": True}
