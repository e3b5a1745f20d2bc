from __future__ import annotations
import httpx
from typing import Any, Mapping, Sequence
from eth_utils import to_checksum_address
from ..domain.models import SwapLog
from ..domain.value_types import Address, BlockTag, Topic0
from ..ports.rpc import RPCClient


class RPCError(RuntimeError):
    """JSON-RPC level failure: an `error` object or an unexpected result shape."""


def _to_hex_block(n: BlockTag) -> str: return n if isinstance(n, str) else hex(int(n))
def _to_hex_data(b: bytes) -> str: return "0x" + b.hex()
def _is_topic_hash(x: str) -> bool: return isinstance(x, str) and x.startswith("0x") and len(x)==66
def _normalize_topic0_list(t0s: Sequence[Topic0]) -> list[str]:
    out: list[str] = []
    for t in t0s:
        s = str(t).strip().lower()
        out.append(s)
    return out

def _build_topics_param(topic0s: Sequence[Topic0]) -> list[list[str]]:
    t0s = _normalize_topic0_list(topic0s)
    if not all(_is_topic_hash(x) for x in t0s):
        raise ValueError(f"Invalid topic0(s): {t0s}")
    return [t0s]

def _hex_to_bytes(s: Any) -> bytes:
    if not isinstance(s, str) or not s.startswith("0x"):
        raise RPCError(f"Unexpected hex result: {s!r}")
    h = s[2:]
    if len(h) % 2: h = "0" + h
    return bytes.fromhex(h)

def _validate_url(rpc_url: str) -> None:
    try:
        url = httpx.URL(rpc_url)
    except httpx.InvalidURL as e:
        raise ValueError(f"Malformed RPC URL {rpc_url!r}: {e}") from e
    if url.scheme not in ("http", "https") or not url.host:
        raise ValueError(f"RPC URL must be http(s)://host[...], got {rpc_url!r}")


class HttpxRPC(RPCClient):
    def __init__(
        self,
        rpc_url: str,
        timeout_s: int = 20,
        max_conn: int = 64,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        _validate_url(rpc_url)
        self.rpc_url = rpc_url
        self._next_id = 0
        self.client = httpx.AsyncClient(
            http2=True,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_connections=max_conn, max_keepalive_connections=max_conn//2),
            transport=transport,
        )

    async def _request(self, method: str, params: list[Any]) -> Any:
        self._next_id += 1
        payload = {"jsonrpc":"2.0","id":self._next_id,"method":method,"params":params}
        r = await self.client.post(self.rpc_url, json=payload)
        r.raise_for_status()
        data = r.json()
        if "error" in data:
            err = data["error"]
            if isinstance(err, dict):
                raise RPCError(f"{method} RPC error code={err.get('code')} message={err.get('message')}")
            raise RPCError(f"{method} RPC error: {err}")
        return data.get("result")

    async def latest_block(self) -> int:
        res = await self._request("eth_blockNumber", [])
        if not isinstance(res, str):
            raise RPCError(f"Unexpected eth_blockNumber result: {res!r}")
        return int(res, 16)

    async def get_logs(
        self,
        topic0s: Sequence[Topic0],
        from_block: int,
        to_block: int,
        address: Address | None = None,
    ) -> list[SwapLog]:
        flt: dict[str, Any] = {
            "fromBlock": _to_hex_block(from_block),
            "toBlock": _to_hex_block(to_block),
            "topics": _build_topics_param(topic0s),
        }
        if address is not None:
            flt["address"] = str(address).lower()
        res = await self._request("eth_getLogs", [flt])
        if not isinstance(res, list):
            raise RPCError(f"Unexpected eth_getLogs result: {res!r}")
        typed: list[SwapLog] = []
        for rl in res:
            if rl.get("removed"):
                continue
            typed.append(SwapLog(
                address=Address(to_checksum_address(rl["address"])),
                block_number=int(rl["blockNumber"], 16),
                tx_hash=str(rl.get("transactionHash") or "").lower(),
                log_index=int(rl.get("logIndex") or "0x0", 16),
            ))
        return typed

    async def eth_call(
        self,
        to: Address,
        data: bytes,
        *,
        block: BlockTag = "latest",
        sender: Address | None = None,
        state_override: Mapping[Address, bytes] | None = None,
    ) -> bytes:
        tx: dict[str, Any] = {"to": str(to).lower(), "data": _to_hex_data(data)}
        if sender is not None:
            tx["from"] = str(sender).lower()
        params: list[Any] = [tx, _to_hex_block(block)]
        if state_override:
            params.append({str(a).lower(): {"code": _to_hex_data(code)} for a, code in state_override.items()})
        return _hex_to_bytes(await self._request("eth_call", params))

    async def aclose(self) -> None:
        await self.client.aclose()
