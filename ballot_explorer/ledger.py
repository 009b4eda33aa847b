# JSON-RPC access to the remote ledger
import itertools
import logging
from typing import Any, List, Optional

import httpx

from .errors import LedgerError
from .models import BlockSummary, LogEntry


def _to_int(value: Any) -> int:
    if isinstance(value, int):
        return value
    return int(value, 16)


class LedgerClient:
    """
    Minimal Ethereum JSON-RPC client over httpx.

    Every failure (connection, HTTP status, JSON-RPC error object, malformed
    payload) is raised as LedgerError so callers only handle one type.
    """

    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)
        self._logger = logging.getLogger("LedgerClient")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _rpc(self, method: str, params: list) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            resp = await self._client.post(self.url, json=payload)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            self._logger.debug(f"{method} failed: {e}")
            raise LedgerError(f"{method}: {e}") from e

        if "error" in data:
            err = data["error"] or {}
            raise LedgerError(f"{method}: RPC error {err.get('code')} {err.get('message')}")
        if "result" not in data:
            raise LedgerError(f"{method}: response without result")
        return data["result"]

    async def get_block_number(self) -> int:
        result = await self._rpc("eth_blockNumber", [])
        try:
            return _to_int(result)
        except (TypeError, ValueError) as e:
            raise LedgerError(f"eth_blockNumber: malformed result {result!r}: {e}") from e

    async def get_logs(self, address: str, topic: str, from_block: int, to_block: int) -> List[LogEntry]:
        params = [{
            "address": address,
            "topics": [topic],
            "fromBlock": hex(from_block),
            "toBlock": hex(to_block),
        }]
        result = await self._rpc("eth_getLogs", params)
        try:
            return [
                LogEntry(
                    address=raw["address"].lower(),
                    topics=[t.lower() for t in raw.get("topics", [])],
                    data=raw.get("data") or "0x",
                    block_number=_to_int(raw["blockNumber"]),
                    tx_hash=raw["transactionHash"].lower(),
                    log_index=_to_int(raw.get("logIndex", "0x0")),
                )
                for raw in result
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerError(f"eth_getLogs: malformed log entry: {e}") from e

    async def get_block(self, number: int) -> BlockSummary:
        raw = await self._rpc("eth_getBlockByNumber", [hex(number), False])
        if raw is None:
            raise LedgerError(f"block {number} not found")
        try:
            base_fee = raw.get("baseFeePerGas")
            return BlockSummary(
                number=_to_int(raw["number"]),
                hash=raw["hash"],
                timestamp=_to_int(raw["timestamp"]),
                miner=raw.get("miner") or "",
                tx_count=len(raw.get("transactions") or []),
                base_fee=None if base_fee is None else _to_int(base_fee),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerError(f"block {number}: malformed header: {e}") from e

    async def call(self, to: str, data: bytes) -> bytes:
        result = await self._rpc("eth_call", [{"to": to, "data": "0x" + data.hex()}, "latest"])
        try:
            return bytes.fromhex(result[2:] if result.startswith("0x") else result)
        except (AttributeError, ValueError) as e:
            raise LedgerError(f"eth_call: malformed result: {e}") from e
