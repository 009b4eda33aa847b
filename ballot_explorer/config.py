# env vars + constants
import os

PORT = int(os.getenv("PORT", "8000"))
RPC_URL = os.getenv("RPC_URL", "http://127.0.0.1:8545")
CONTRACT_ADDRESS = os.getenv("CONTRACT_ADDRESS", "")
EXPLORER_URL = os.getenv("EXPLORER_URL", "")

# known deployment block; only narrows the log window, never widens it
DEPLOYMENT_BLOCK = int(os.getenv("DEPLOYMENT_BLOCK", "0"))
LOG_WINDOW_BLOCKS = int(os.getenv("LOG_WINDOW_BLOCKS", "5000"))
MAX_DISPLAY = int(os.getenv("MAX_DISPLAY", "10"))
RECENT_BLOCKS = int(os.getenv("RECENT_BLOCKS", "10"))

PAGE_SIZE = int(os.getenv("PAGE_SIZE", "25"))
PAGE_WINDOW = int(os.getenv("PAGE_WINDOW", "5"))
VOTING_PAGE_STEP = int(os.getenv("VOTING_PAGE_STEP", "8"))

REFRESH_INTERVAL = float(os.getenv("REFRESH_INTERVAL", "15.0"))
TALLY_POLL_INTERVAL = float(os.getenv("TALLY_POLL_INTERVAL", "4.0"))
RPC_TIMEOUT = float(os.getenv("RPC_TIMEOUT", "10.0"))
STALE_AFTER = float(os.getenv("STALE_AFTER", "60.0"))
DEAD_AFTER = float(os.getenv("DEAD_AFTER", "300.0"))

MAX_DURATION_SECONDS = int(os.getenv("MAX_DURATION_SECONDS", str(30 * 24 * 60 * 60)))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
