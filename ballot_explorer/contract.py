# ABI glue for the deployed voting contract
import asyncio
import logging
from typing import List

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import event_signature_to_log_topic, function_signature_to_4byte_selector, to_checksum_address

from .errors import LedgerError
from .ledger import LedgerClient
from .models import CreatedRecord, LogEntry, VoteCastRecord, VotingSummary

# On-chain signatures of the deployed contract. These are wire facts and must
# match the contract ABI exactly.
VOTING_CREATED_EVENT = "VotacionCreada(uint256,address,string,uint256,uint256)"
VOTE_CAST_EVENT = "VotoEmitido(uint256,address,uint256)"

VOTING_CREATED_TOPIC = "0x" + event_signature_to_log_topic(VOTING_CREATED_EVENT).hex()
VOTE_CAST_TOPIC = "0x" + event_signature_to_log_topic(VOTE_CAST_EVENT).hex()

FN_VOTING_COUNT = "contadorVotaciones()"
FN_GET_VOTING = "obtenerVotacion(uint256)"
FN_GET_OPTIONS = "obtenerOpciones(uint256)"
FN_HAS_VOTED = "yaVoto(uint256,address)"
FN_VOTE_COUNT = "obtenerVotos(uint256,uint256)"
FN_OWNER = "owner()"
FN_DEPLOYMENT_BLOCK = "bloqueDespliegue()"


def _topic_int(topic: str) -> int:
    return int(topic, 16)


def _topic_address(topic: str) -> str:
    return to_checksum_address("0x" + topic[-40:])


def _data_bytes(data: str) -> bytes:
    return bytes.fromhex(data[2:] if data.startswith("0x") else data)


def decode_created(log: LogEntry) -> CreatedRecord:
    """
    VotingCreated(uint256 indexed id, address indexed creator,
                  string title, uint256 endTime, uint256 optionCount)
    """
    title, end_time, option_count = decode(["string", "uint256", "uint256"], _data_bytes(log.data))
    return CreatedRecord(
        voting_id=_topic_int(log.topics[1]),
        creator=_topic_address(log.topics[2]),
        title=title,
        end_time=end_time,
        option_count=option_count,
        block_number=log.block_number,
        tx_hash=log.tx_hash,
    )


def decode_vote_cast(log: LogEntry) -> VoteCastRecord:
    """
    VoteCast(uint256 indexed id, address indexed voter, uint256 optionIndex)
    """
    (option_index,) = decode(["uint256"], _data_bytes(log.data))
    return VoteCastRecord(
        voting_id=_topic_int(log.topics[1]),
        voter=_topic_address(log.topics[2]),
        option_index=option_index,
        block_number=log.block_number,
        tx_hash=log.tx_hash,
    )


def encode_call(signature: str, arg_types: List[str], args: list) -> bytes:
    return function_signature_to_4byte_selector(signature) + encode(arg_types, args)


class VotingContractReader:
    """
    Read access to per-voting state through eth_call. Arguments that cannot
    be ABI-encoded and results that cannot be decoded raise LedgerError like
    any other failed call.
    """

    def __init__(self, ledger: LedgerClient, address: str):
        self._ledger = ledger
        self.address = address
        self._logger = logging.getLogger("VotingContractReader")

    async def _call(self, signature: str, arg_types: List[str], args: list, out_types: List[str]) -> tuple:
        try:
            data = encode_call(signature, arg_types, args)
        except EncodingError as e:
            raise LedgerError(f"{signature}: cannot encode arguments {args}: {e}") from e
        raw = await self._ledger.call(self.address, data)
        try:
            return decode(out_types, raw)
        except DecodingError as e:
            raise LedgerError(f"{signature}: cannot decode result: {e}") from e

    async def voting_count(self) -> int:
        (n,) = await self._call(FN_VOTING_COUNT, [], [], ["uint256"])
        return n

    async def get_voting(self, voting_id: int) -> VotingSummary:
        title, creator, end_time, option_count, active = await self._call(
            FN_GET_VOTING, ["uint256"], [voting_id],
            ["string", "address", "uint256", "uint256", "bool"],
        )
        return VotingSummary(
            id=voting_id,
            title=title,
            creator=to_checksum_address(creator),
            end_time=end_time,
            option_count=option_count,
            is_active=active,
        )

    async def get_options(self, voting_id: int) -> List[str]:
        (names,) = await self._call(FN_GET_OPTIONS, ["uint256"], [voting_id], ["string[]"])
        return list(names)

    async def has_voted(self, voting_id: int, address: str) -> bool:
        (voted,) = await self._call(FN_HAS_VOTED, ["uint256", "address"], [voting_id, address], ["bool"])
        return voted

    async def vote_count(self, voting_id: int, option_index: int) -> int:
        (n,) = await self._call(FN_VOTE_COUNT, ["uint256", "uint256"], [voting_id, option_index], ["uint256"])
        return n

    async def owner(self) -> str:
        (addr,) = await self._call(FN_OWNER, [], [], ["address"])
        return to_checksum_address(addr)

    async def deployment_block(self) -> int:
        (n,) = await self._call(FN_DEPLOYMENT_BLOCK, [], [], ["uint256"])
        return n

    async def get_votings(self, voting_ids: List[int]) -> List[VotingSummary]:
        """
        Fetch several summaries concurrently; items that fail to load are skipped.
        """
        results = await asyncio.gather(*(self.get_voting(i) for i in voting_ids), return_exceptions=True)
        out = []
        for vid, res in zip(voting_ids, results):
            if isinstance(res, BaseException):
                self._logger.warning(f"voting {vid} could not be loaded: {res}")
                continue
            out.append(res)
        return out
