# refresh freshness + status computation
import time

from fastapi import APIRouter, Request

router = APIRouter()


def freshness(last_success: float, now: float, stale_after: float, dead_after: float) -> str:
    """
    Classify explorer data by how long ago the last successful refresh was.
    `last_success` is a time.monotonic() value, 0.0 meaning never.
    """
    if last_success == 0.0:
        return "UNKNOWN"
    age = now - last_success
    if age <= stale_after:
        return "FRESH"
    if age <= dead_after:
        return "STALE"
    return "DEAD"


@router.get("/status")
def status(request: Request):
    """
    Freshness of the explorer data, the last refresh error (if any) and the
    number of mounted tally watchers.
    """
    state = request.app.state
    store = state.store
    now = time.monotonic()
    age = None if store.last_success == 0.0 else now - store.last_success

    return {
        "state": freshness(store.last_success, now, state.stale_after, state.dead_after),
        "last_refresh_seconds_ago": None if age is None else round(age, 2),
        "last_error": store.last_error,
        "refreshing": state.indexer.in_flight,
        "events": len(store.records),
        "blocks": len(store.blocks),
        "watchers": len(state.arena),
    }
