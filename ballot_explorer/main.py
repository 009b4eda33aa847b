import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from . import config
from .contract import VotingContractReader
from .errors import LedgerError
from .explorer import router as explorer_router
from .indexer import ActivityIndexer, refresh_loop
from .ledger import LedgerClient
from .state import ActivityStore
from .status import router as status_router
from .tally import TallyArena, tally_poll_loop
from .voting import router as voting_router


def create_app(ledger=None, voting_reader=None, submitter=None, background: bool = True) -> FastAPI:
    """
    Build the service. Collaborators can be injected (tests, custom transports);
    anything left out is built from the environment configuration.
    """
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    owns_ledger = ledger is None
    ledger = ledger or LedgerClient(config.RPC_URL, timeout=config.RPC_TIMEOUT)
    voting_reader = voting_reader or VotingContractReader(ledger, config.CONTRACT_ADDRESS)
    store = ActivityStore()
    indexer = ActivityIndexer(
        ledger,
        store,
        config.CONTRACT_ADDRESS,
        window_size=config.LOG_WINDOW_BLOCKS,
        floor_block=config.DEPLOYMENT_BLOCK,
        max_display=config.MAX_DISPLAY,
        recent_blocks=config.RECENT_BLOCKS,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: background tasks
        tasks = []
        if background:
            if not indexer.floor_block:
                try:
                    indexer.floor_block = await voting_reader.deployment_block()
                except LedgerError as e:
                    logging.getLogger("ActivityIndexer").warning(f"deployment block unknown, using plain window: {e}")
            tasks.append(asyncio.create_task(refresh_loop(indexer, config.REFRESH_INTERVAL)))
            tasks.append(asyncio.create_task(tally_poll_loop(app.state.arena, config.TALLY_POLL_INTERVAL)))
        app.state.tasks = tasks
        yield
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        if owns_ledger:
            await ledger.aclose()

    app = FastAPI(title="Ballot Explorer", lifespan=lifespan)
    app.state.ledger = ledger
    app.state.voting_reader = voting_reader
    app.state.submitter = submitter
    app.state.store = store
    app.state.indexer = indexer
    app.state.arena = TallyArena(voting_reader)
    app.state.explorer_url = config.EXPLORER_URL
    app.state.stale_after = config.STALE_AFTER
    app.state.dead_after = config.DEAD_AFTER

    app.include_router(explorer_router)
    app.include_router(voting_router)
    app.include_router(status_router)

    @app.get("/")
    def root():
        return RedirectResponse(url="/docs")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("ballot_explorer.main:app", host="0.0.0.0", port=config.PORT, log_level="info")
