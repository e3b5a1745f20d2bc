import asyncio, logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from ..application.config import (
    DEFAULT_CONCURRENCY, DEFAULT_FROM_BLOCK, DEFAULT_TO_BLOCK, ScanSettings, parse_bytecode,
)
from ..application.diagnostics import STAGES
from ..application.planning import DEFAULT_CHUNK_SIZE
from ..application.use_cases import run_reconciliation

app = typer.Typer(add_completion=False)
console = Console(stderr=True)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


@app.command()
def scan(
    rpc_url: str = typer.Option(..., "--rpc-url", envvar="RPC_URL", help="RPC endpoint URL"),
    from_block: int = typer.Option(DEFAULT_FROM_BLOCK, "--from-block", show_default=True),
    to_block: int = typer.Option(DEFAULT_TO_BLOCK, "--to-block", show_default=True),
    step: int = typer.Option(DEFAULT_CHUNK_SIZE, "--step", show_default=True, help="Blocks per eth_getLogs"),
    concurrency: int = typer.Option(DEFAULT_CONCURRENCY, "--concurrency", show_default=True, help="Max parallel requests per stage"),
    out: str = typer.Option("output.json", "--out", show_default=True, help="Report path"),
    manifest: Optional[str] = typer.Option(None, "--manifest", help="Optional JSONL path for per-unit status"),
    token_info_code: Optional[Path] = typer.Option(
        None, "--token-info-code", envvar="TOKEN_INFO_CODE", exists=True, dir_okay=False,
        help="File with hex runtime bytecode of the token-info lookup contract",
    ),
    reserves_at: str = typer.Option("latest", "--reserves-at", help="latest | action (read getReserves at the swap block)"),
    timeout: int = typer.Option(20, "--timeout", help="Per-request timeout in seconds"),
    log_level: str = typer.Option("INFO", "--log-level"),
):
    """Find swapped AMM pairs in a block range and compare getReserves() with token balanceOf()."""
    _setup_logging(log_level)
    try:
        code = parse_bytecode(token_info_code.read_text(encoding="utf-8")) if token_info_code else None
        settings = ScanSettings(
            rpc_url=rpc_url, from_block=from_block, to_block=to_block,
            chunk_size=step, concurrency=concurrency, out_path=out,
            manifest_path=manifest, token_info_code=code, timeout_s=timeout,
            reserve_block=reserves_at,  # type: ignore[arg-type]
        ).validate()
        stats = asyncio.run(run_reconciliation(settings))
    except ValueError as e:
        console.print(f"[red]error[/]: {e}")
        raise typer.Exit(code=1)

    console.print(
        f"[bold]done[/]: {stats['records']} records • "
        f"[red]strange[/]={stats['strange']} • "
        f"report={'written to ' + out if stats['report_written'] else '[red]not written[/]'} • "
        f"tokens via {stats['token_info_mode']}"
    )
    console.print(
        "[bold]summary[/]: " + "  ".join(
            f"{s}=[green]{stats[f'{s}_ok']}[/]/[red]{stats[f'{s}_dropped']}[/]" for s in STAGES
        )
    )


if __name__ == "__main__":
    app()
