import asyncio
import json

import httpx
import pytest
from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector

from ballot_explorer.contract import (
    FN_GET_OPTIONS,
    FN_GET_VOTING,
    FN_HAS_VOTED,
    FN_OWNER,
    FN_VOTE_COUNT,
    FN_VOTING_COUNT,
    VOTE_CAST_TOPIC,
    VOTING_CREATED_TOPIC,
)
from ballot_explorer.errors import LedgerError
from ballot_explorer.ledger import LedgerClient
from ballot_explorer.models import BlockSummary, CreatedRecord, LogEntry, VoteCastRecord, VotingSummary

CONTRACT = "0x5fbdb2315678afecb367f032d93f642f64180aa3"
ALICE = "0x70997970c51812dc3a010c7d01b50e0d17dc79c8"
BOB = "0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc"


def tx(n: int) -> str:
    return "0x" + format(n, "064x")


def _uint_topic(value: int) -> str:
    return "0x" + value.to_bytes(32, "big").hex()


def _addr_topic(addr: str) -> str:
    return "0x" + "00" * 12 + addr[2:].lower()


def created_log(voting_id, block, tx_hash, title="Budget", creator=ALICE, end_time=1_700_000_000, options=2):
    data = encode(["string", "uint256", "uint256"], [title, end_time, options])
    return LogEntry(
        address=CONTRACT,
        topics=[VOTING_CREATED_TOPIC, _uint_topic(voting_id), _addr_topic(creator)],
        data="0x" + data.hex(),
        block_number=block,
        tx_hash=tx_hash,
        log_index=0,
    )


def vote_log(voting_id, block, tx_hash, option=0, voter=BOB):
    data = encode(["uint256"], [option])
    return LogEntry(
        address=CONTRACT,
        topics=[VOTE_CAST_TOPIC, _uint_topic(voting_id), _addr_topic(voter)],
        data="0x" + data.hex(),
        block_number=block,
        tx_hash=tx_hash,
        log_index=1,
    )


def created(voting_id, block, tx_hash, title="Budget", timestamp=None):
    return CreatedRecord(
        voting_id=voting_id, block_number=block, tx_hash=tx_hash, timestamp=timestamp,
        creator=ALICE, title=title, end_time=1_700_000_000, option_count=2,
    )


def vote(voting_id, block, tx_hash, option=0, timestamp=None):
    return VoteCastRecord(
        voting_id=voting_id, block_number=block, tx_hash=tx_hash, timestamp=timestamp,
        voter=BOB, option_index=option,
    )


def block_summary(number: int) -> BlockSummary:
    return BlockSummary(
        number=number,
        hash=tx(10_000 + number),
        timestamp=1_600_000_000 + number * 12,
        miner=ALICE,
        tx_count=1,
    )


class FakeLedger:
    """In-memory stand-in for LedgerClient."""

    def __init__(self, latest=100, created_logs=(), vote_logs=()):
        self.latest = latest
        self.logs = {VOTING_CREATED_TOPIC: list(created_logs), VOTE_CAST_TOPIC: list(vote_logs)}
        self.fail_topics = set()
        self.fail_blocks = set()
        self.fail_block_number = False
        self.log_queries = []
        self.block_requests = []
        self._concurrent = 0
        self.max_concurrent_blocks = 0

    async def get_block_number(self):
        if self.fail_block_number:
            raise LedgerError("eth_blockNumber: connection refused")
        return self.latest

    async def get_logs(self, address, topic, from_block, to_block):
        self.log_queries.append((topic, from_block, to_block))
        await asyncio.sleep(0)
        if topic in self.fail_topics:
            raise LedgerError("eth_getLogs: range too large")
        return [log for log in self.logs[topic] if from_block <= log.block_number <= to_block]

    async def get_block(self, number):
        self.block_requests.append(number)
        self._concurrent += 1
        self.max_concurrent_blocks = max(self.max_concurrent_blocks, self._concurrent)
        try:
            await asyncio.sleep(0)
            if number in self.fail_blocks:
                raise LedgerError(f"block {number} not found")
            return block_summary(number)
        finally:
            self._concurrent -= 1

    async def aclose(self):
        pass


class FakeVotingReader:
    """In-memory stand-in for VotingContractReader."""

    def __init__(self):
        self.summaries = {}
        self.options = {}
        self.counts = {}
        self.voted = set()
        self.failing_options = set()
        self.unreachable = False
        self.owner_address = ALICE
        self.crashing = set()

    def add(self, voting_id, title, options, counts, end_time=2_000_000_000, active=True):
        self.summaries[voting_id] = VotingSummary(
            id=voting_id, title=title, creator=ALICE, end_time=end_time,
            option_count=len(options), is_active=active,
        )
        self.options[voting_id] = list(options)
        for i, c in enumerate(counts):
            self.counts[(voting_id, i)] = c

    async def voting_count(self):
        if self.unreachable:
            raise LedgerError("eth_call: connection refused")
        return len(self.summaries)

    async def get_voting(self, voting_id):
        if voting_id in self.crashing:
            raise RuntimeError(f"voting {voting_id}: reader bug")
        if self.unreachable or voting_id not in self.summaries:
            raise LedgerError(f"voting {voting_id} unavailable")
        return self.summaries[voting_id]

    async def get_votings(self, voting_ids):
        return [self.summaries[i] for i in voting_ids if i in self.summaries]

    async def get_options(self, voting_id):
        return self.options[voting_id]

    async def has_voted(self, voting_id, address):
        return (voting_id, address) in self.voted

    async def vote_count(self, voting_id, option_index):
        await asyncio.sleep(0)
        if (voting_id, option_index) in self.failing_options:
            raise LedgerError("eth_call: timeout")
        return self.counts.get((voting_id, option_index), 0)

    async def owner(self):
        if self.unreachable:
            raise LedgerError("eth_call: connection refused")
        return self.owner_address

    async def deployment_block(self):
        return 0


class FakeContractNode:
    """
    JSON-RPC node behind httpx.MockTransport. Answers eth_call for the voting
    contract by selector, so the real LedgerClient and VotingContractReader
    (ABI encoding included) are exercised.
    """

    def __init__(self):
        self.votings = {}
        self.voted = set()
        self.block_number = "0x64"
        self.calls = 0

    def add(self, voting_id, title, options, counts, end_time=2_000_000_000, active=True):
        self.votings[voting_id] = (title, list(options), list(counts), end_time, active)

    def ledger(self) -> LedgerClient:
        transport = httpx.MockTransport(lambda request: self.handle(json.loads(request.content)))
        return LedgerClient("http://node.test", client=httpx.AsyncClient(transport=transport))

    def handle(self, body) -> httpx.Response:
        self.calls += 1
        method = body["method"]
        if method == "eth_blockNumber":
            return self._result(body, self.block_number)
        if method == "eth_getLogs":
            return self._result(body, [])
        if method == "eth_getBlockByNumber":
            number = int(body["params"][0], 16)
            return self._result(body, {
                "number": hex(number), "hash": tx(10_000 + number),
                "timestamp": hex(1_600_000_000 + number * 12), "miner": ALICE, "transactions": [],
            })
        if method == "eth_call":
            data = bytes.fromhex(body["params"][0]["data"][2:])
            answer = self._answer(data[:4], data[4:])
            if answer is None:
                return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"],
                                                 "error": {"code": 3, "message": "execution reverted"}})
            return self._result(body, "0x" + answer.hex())
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"],
                                         "error": {"code": -32601, "message": "method not found"}})

    def _result(self, body, result):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def _answer(self, selector, args):
        if selector == function_signature_to_4byte_selector(FN_VOTING_COUNT):
            return encode(["uint256"], [len(self.votings)])
        if selector == function_signature_to_4byte_selector(FN_OWNER):
            return encode(["address"], [ALICE])
        if selector == function_signature_to_4byte_selector(FN_GET_VOTING):
            (vid,) = decode(["uint256"], args)
            if vid not in self.votings:
                return None
            title, options, _, end_time, active = self.votings[vid]
            return encode(["string", "address", "uint256", "uint256", "bool"],
                          [title, ALICE, end_time, len(options), active])
        if selector == function_signature_to_4byte_selector(FN_GET_OPTIONS):
            (vid,) = decode(["uint256"], args)
            return encode(["string[]"], [self.votings[vid][1]])
        if selector == function_signature_to_4byte_selector(FN_HAS_VOTED):
            vid, addr = decode(["uint256", "address"], args)
            return encode(["bool"], [(vid, addr.lower()) in self.voted])
        if selector == function_signature_to_4byte_selector(FN_VOTE_COUNT):
            vid, idx = decode(["uint256", "uint256"], args)
            return encode(["uint256"], [self.votings[vid][2][idx]])
        return None


async def wait_until(predicate, timeout=2.0, step=0.01) -> bool:
    for _ in range(int(timeout / step)):
        if predicate():
            return True
        await asyncio.sleep(step)
    return predicate()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def reader():
    return FakeVotingReader()
