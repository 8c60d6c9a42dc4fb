"""
Token transfer events decoded from receipt logs.

Three shapes are recognised by topic0 and topic count:
- ERC-721 Transfer(from, to, tokenId)           all three indexed
- ERC-1155 TransferSingle(operator, from, to, id, value)
- ERC-1155 TransferBatch(operator, from, to, ids[], values[])

decode_log() returns None for anything else (ERC-20 Transfer, other events,
truncated data); it never raises on log content.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Union

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from web3 import Web3


TRANSFER_TOPIC = bytes(Web3.keccak(text="Transfer(address,address,uint256)"))
TRANSFER_SINGLE_TOPIC = bytes(Web3.keccak(text="TransferSingle(address,address,address,uint256,uint256)"))
TRANSFER_BATCH_TOPIC = bytes(Web3.keccak(text="TransferBatch(address,address,address,uint256[],uint256[])"))


def same_address(a: str | None, b: str | None) -> bool:
    """Case-insensitive address comparison."""
    if not a or not b:
        return False
    return a.strip().lower() == b.strip().lower()


@dataclass(frozen=True)
class TransferEvent:
    from_address: str
    to_address: str
    token_id: int

    def quantity_to(self, wallet: str, token_id: int) -> int:
        if self.token_id == token_id and same_address(self.to_address, wallet):
            return 1
        return 0


@dataclass(frozen=True)
class TransferSingleEvent:
    operator: str
    from_address: str
    to_address: str
    token_id: int
    value: int

    def quantity_to(self, wallet: str, token_id: int) -> int:
        if self.token_id == token_id and same_address(self.to_address, wallet):
            return self.value
        return 0


@dataclass(frozen=True)
class TransferBatchEvent:
    operator: str
    from_address: str
    to_address: str
    token_ids: tuple[int, ...]
    values: tuple[int, ...]

    def quantity_to(self, wallet: str, token_id: int) -> int:
        if not same_address(self.to_address, wallet):
            return 0
        try:
            index = self.token_ids.index(token_id)
        except ValueError:
            return 0
        return self.values[index]


LogEvent = Union[TransferEvent, TransferSingleEvent, TransferBatchEvent]


def _to_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, str):
        raw = value[2:] if value.lower().startswith("0x") else value
        return bytes.fromhex(raw)
    return bytes(value)


def _topic_address(topic: bytes) -> str:
    return "0x" + topic[-20:].hex()


def _topic_int(topic: bytes) -> int:
    return int.from_bytes(topic, "big")


def decode_log(log: Mapping[str, Any]) -> LogEvent | None:
    """Decode one receipt log into a transfer event, or None when it matches no known shape."""
    try:
        topics = [_to_bytes(t) for t in (log.get("topics") or [])]
        data = _to_bytes(log.get("data") or b"")
    except (TypeError, ValueError):
        return None
    if not topics or any(len(t) != 32 for t in topics):
        return None

    signature = topics[0]

    if signature == TRANSFER_TOPIC and len(topics) == 4:
        return TransferEvent(
            from_address=_topic_address(topics[1]),
            to_address=_topic_address(topics[2]),
            token_id=_topic_int(topics[3]),
        )

    if signature == TRANSFER_SINGLE_TOPIC and len(topics) == 4:
        if len(data) != 64:
            return None
        token_id, value = abi_decode(["uint256", "uint256"], data)
        return TransferSingleEvent(
            operator=_topic_address(topics[1]),
            from_address=_topic_address(topics[2]),
            to_address=_topic_address(topics[3]),
            token_id=token_id,
            value=value,
        )

    if signature == TRANSFER_BATCH_TOPIC and len(topics) == 4:
        try:
            token_ids, values = abi_decode(["uint256[]", "uint256[]"], data)
        except DecodingError:
            return None
        if len(token_ids) != len(values):
            return None
        return TransferBatchEvent(
            operator=_topic_address(topics[1]),
            from_address=_topic_address(topics[2]),
            to_address=_topic_address(topics[3]),
            token_ids=tuple(token_ids),
            values=tuple(values),
        )

    return None
