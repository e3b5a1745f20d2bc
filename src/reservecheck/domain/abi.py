from __future__ import annotations

from eth_abi import decode, encode
from eth_utils import (
    event_signature_to_log_topic,
    function_signature_to_4byte_selector,
    to_checksum_address,
)

from .value_types import Address, Topic0


SWAP_EVENT = "Swap(address,uint256,uint256,uint256,uint256,address)"
SWAP_T0 = Topic0("0x" + event_signature_to_log_topic(SWAP_EVENT).hex())

TOKEN0_SELECTOR       = function_signature_to_4byte_selector("token0()")
TOKEN1_SELECTOR       = function_signature_to_4byte_selector("token1()")
GETRESERVES_SELECTOR  = function_signature_to_4byte_selector("getReserves()")
BALANCEOF_SELECTOR    = function_signature_to_4byte_selector("balanceOf(address)")
NAME_SELECTOR         = function_signature_to_4byte_selector("name()")
SYMBOL_SELECTOR       = function_signature_to_4byte_selector("symbol()")
DECIMALS_SELECTOR     = function_signature_to_4byte_selector("decimals()")
GETTOKENINFO_SELECTOR = function_signature_to_4byte_selector("getTokenInfo(address)")

ZERO_ADDRESS = Address("0x0000000000000000000000000000000000000000")

# --------- 32B word slicing (fast, no eth_abi) --------------------------------
def _word(b: bytes, i: int) -> bytes:
    return b[i*32:(i+1)*32]

def _u256(w: bytes) -> int:
    return int.from_bytes(w, "big")

def _addr_from_word(w: bytes) -> Address:
    return Address(to_checksum_address("0x" + w[-20:].hex()))

def _require_words(data: bytes, n: int, what: str) -> None:
    if len(data) < 32 * n:
        raise ValueError(f"{what}: expected {32*n} bytes, got {len(data)}")

# --------- calldata -----------------------------------------------------------
def encode_call(selector: bytes, types: list[str] | None = None, args: list | None = None) -> bytes:
    if not types:
        return selector
    return selector + encode(types, args or [])

def balance_of_calldata(owner: str) -> bytes:
    return encode_call(BALANCEOF_SELECTOR, ["address"], [to_checksum_address(owner)])

def token_info_calldata(token: str) -> bytes:
    return encode_call(GETTOKENINFO_SELECTOR, ["address"], [to_checksum_address(token)])

# --------- return decoding ----------------------------------------------------
def decode_address(data: bytes) -> Address:
    _require_words(data, 1, "address")
    w = _word(data, 0)
    if any(w[:12]):
        raise ValueError(f"address: high bytes not zero in 0x{w.hex()}")
    return _addr_from_word(w)

def decode_uint(data: bytes) -> int:
    _require_words(data, 1, "uint256")
    return _u256(_word(data, 0))

def decode_reserves(data: bytes) -> tuple[int, int]:
    """getReserves() -> (uint112 reserve0, uint112 reserve1, uint32 blockTimestampLast)"""
    _require_words(data, 3, "getReserves")
    return _u256(_word(data, 0)), _u256(_word(data, 1))

def decode_token_info(data: bytes) -> tuple[str, str, int]:
    """getTokenInfo(address) -> (name, symbol, decimals, totalSupply); totalSupply is dropped."""
    name, symbol, decimals, _total_supply = decode(["string", "string", "uint8", "uint256"], data)
    return name, symbol, decimals

def decode_string_or_bytes32(data: bytes) -> str:
    """ERC-20 string getter; some older tokens (e.g. MKR) return bytes32 instead of string."""
    if len(data) == 32:
        return data.rstrip(b"\x00").decode("utf-8", errors="replace")
    (value,) = decode(["string"], data)
    return value
