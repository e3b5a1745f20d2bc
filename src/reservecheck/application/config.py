from __future__ import annotations
from dataclasses import dataclass
from typing import Literal

from .planning import DEFAULT_CHUNK_SIZE

# Polygon heights used by the reference deployment
DEFAULT_FROM_BLOCK = 52_900_000
DEFAULT_TO_BLOCK   = 53_000_000
DEFAULT_CONCURRENCY = 16

ReserveBlock = Literal["latest", "action"]

@dataclass(slots=True, frozen=True)
class ScanSettings:
    rpc_url: str
    from_block: int = DEFAULT_FROM_BLOCK
    to_block: int = DEFAULT_TO_BLOCK
    chunk_size: int = DEFAULT_CHUNK_SIZE
    concurrency: int = DEFAULT_CONCURRENCY
    out_path: str = "output.json"
    manifest_path: str | None = None
    token_info_code: bytes | None = None    # lookup contract runtime bytecode
    timeout_s: int = 20
    reserve_block: ReserveBlock = "latest"

    def validate(self) -> "ScanSettings":
        # block range is not checked here: a degenerate range plans no chunks
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {self.chunk_size}")
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {self.concurrency}")
        if self.reserve_block not in ("latest", "action"):
            raise ValueError(f"reserve_block must be 'latest' or 'action', got {self.reserve_block!r}")
        return self


def parse_bytecode(text: str) -> bytes:
    """Hex runtime bytecode, with or without 0x, surrounding whitespace ignored."""
    h = text.strip()
    if h[:2].lower() == "0x":
        h = h[2:]
    if not h:
        raise ValueError("empty bytecode")
    try:
        return bytes.fromhex(h)
    except ValueError as e:
        raise ValueError(f"bytecode is not valid hex: {e}") from e
