from __future__ import annotations
from typing import NewType, Literal

Address = NewType("Address", str)   # EIP-55 checksum, 0x-prefixed
Topic0  = NewType("Topic0", str)    # 66-char 0x-hash
BlockTag = int | Literal["latest"]
Status  = Literal["ok", "dropped"]
Stage   = Literal["logs", "discovery", "tokens", "reserves", "balances"]
