from __future__ import annotations
from ..domain.models import BlockRange

DEFAULT_CHUNK_SIZE = 5_000

def plan_chunks(start_block: int, end_block: int, step: int = DEFAULT_CHUNK_SIZE) -> list[BlockRange]:
    """
    Contiguous inclusive ranges of at most `step` blocks covering [start_block, end_block].
    A degenerate range (start after end, or entirely below genesis) plans nothing.
    """
    if step <= 0:
        raise ValueError(f"step must be > 0, got {step}")
    out: list[BlockRange] = []
    b = max(start_block, 0)
    while b <= end_block:
        fb, tb = b, min(end_block, b + step - 1)
        out.append(BlockRange(start=fb, end=tb))
        b = tb + 1
    return out
