# reservecheck/ports/rpc.py
from __future__ import annotations

from typing import Mapping, Protocol, Sequence
from ..domain.models import SwapLog
from ..domain.value_types import Address, BlockTag, Topic0


class RPCClient(Protocol):
    """Port defining the contract for an Ethereum JSON-RPC client."""

    async def get_logs(
        self,
        topic0s: Sequence[Topic0],
        from_block: int,
        to_block: int,
        address: Address | None = None,
    ) -> list[SwapLog]:
        """Return typed logs for [from_block, to_block] inclusive, any emitter unless `address` is set."""

    async def eth_call(
        self,
        to: Address,
        data: bytes,
        *,
        block: BlockTag = "latest",
        sender: Address | None = None,
        state_override: Mapping[Address, bytes] | None = None,
    ) -> bytes:
        """Run a read-only call; `state_override` maps address -> code injected for this call only."""

    async def latest_block(self) -> int:
        """Return the latest block number as an integer."""

    async def aclose(self) -> None:
        """Release the underlying connections."""
