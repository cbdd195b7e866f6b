from __future__ import annotations

import asyncio
import gzip
import json
import sys
from typing import Any, Iterator, Optional

import typer
from loguru import logger
from prometheus_client import start_http_server

from .config import BatchSinkConfig, StorageSinkConfig, sanitize_streamer_config
from .errors import ConfigError
from .factory import new_streamer
from .schema import TableSchema
from .settings import get_settings

app = typer.Typer(help="streamwriter operational CLI")

MODES = ("insert", "storage", "batch")

# ---------------------------
# Common options
# ---------------------------


def dsn_opt() -> str:
    return typer.Option(..., "--dsn", envvar="STREAMWRITER_DSN", help="PostgreSQL DSN")


def table_opt() -> str:
    return typer.Option(..., "--table", envvar="STREAMWRITER_TABLE", help="Destination table")


def iter_ndjson(path: str) -> Iterator[Any]:
    """Yield one decoded JSON value per non-blank line ('-' reads stdin, .gz is inflated)."""
    if path == "-":
        fh = sys.stdin
    elif path.endswith(".gz"):
        fh = gzip.open(path, "rt", encoding="utf-8")
    else:
        fh = open(path, "r", encoding="utf-8")
    try:
        for n, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError as exc:
                raise typer.BadParameter(f"{path}:{n}: invalid JSON ({exc.msg})") from exc
    finally:
        if fh is not sys.stdin:
            fh.close()


# ---------------------------
# Commands
# ---------------------------


@app.command("load")
def load(
    path: str = typer.Argument(..., help="NDJSON file ('-' for stdin, .gz supported)"),
    dsn: str = dsn_opt(),
    table: str = table_opt(),
    mode: str = typer.Option("insert", "--mode", help="insert|storage|batch"),
    columns: Optional[str] = typer.Option(
        None, "--columns", help="Comma-separated column list (required for storage mode)"
    ),
    workers: int = typer.Option(0, "--workers", help="Worker count (0 = env/default)"),
    queue_size: int = typer.Option(0, "--queue-size", help="Per-worker queue size"),
    max_batch_delay: float = typer.Option(0.0, "--max-batch-delay", help="Seconds"),
    batch_size: int = typer.Option(0, "--batch-size", help="Records per Sink.put"),
    source_format: str = typer.Option("", "--format", help="batch mode: csv|text|binary"),
    disposition: str = typer.Option("", "--disposition", help="batch mode: append|truncate|empty"),
    metrics_port: Optional[int] = typer.Option(None, "--metrics-port", help="Expose /metrics"),
):
    """Stream an NDJSON file into a table through the streamer."""
    mode_l = mode.lower()
    if mode_l not in MODES:
        raise typer.BadParameter(f"mode must be one of: {', '.join(MODES)}")

    settings = get_settings()
    cfg = settings.to_config()
    if workers:
        cfg.worker_count = workers
    if queue_size:
        cfg.worker_queue_size = queue_size
    if max_batch_delay:
        cfg.max_batch_delay = max_batch_delay
    if batch_size:
        cfg.batch_size = batch_size

    schema = TableSchema(columns=columns.split(",")) if columns else None
    cfg.batch_sink = None
    if mode_l == "storage":
        if schema is None:
            raise typer.BadParameter("storage mode requires --columns")
        cfg.storage_sink = StorageSinkConfig(schema=schema)
    elif mode_l == "batch":
        cfg.batch_sink = BatchSinkConfig(
            schema=schema,
            source_format=source_format or settings.source_format,
            write_disposition=disposition or settings.write_disposition,
            fail_for_unknown_values=settings.fail_for_unknown_values,
        )

    port = metrics_port or settings.metrics_port
    if port:
        start_http_server(port)
        logger.info(f"Prometheus metrics on :{port}/metrics")

    try:
        summary = asyncio.run(_load(path, dsn, table, cfg, schema))
    except ConfigError as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(json.dumps(summary, default=str, indent=2))
    if summary["errors"]:
        raise typer.Exit(code=1)


async def _load(path: str, dsn: str, table: str, cfg, schema: Optional[TableSchema]) -> dict:
    streamer = new_streamer(dsn, table, cfg, schema=schema)
    n = 0
    await streamer.start()
    try:
        for obj in iter_ndjson(path):
            await streamer.write(obj)
            n += 1
    finally:
        errors = await streamer.close()
    return {
        "table": table,
        "written": n,
        "errors": [f"{type(e).__name__}: {e}" for e in errors],
    }


@app.command("show-config")
def show_config():
    """Print the effective (sanitised) streamer config derived from the environment."""
    cfg = sanitize_streamer_config(get_settings().to_config())
    out = {
        "worker_count": cfg.worker_count,
        "worker_queue_size": cfg.worker_queue_size,
        "max_batch_delay": cfg.max_batch_delay,
        "batch_size": cfg.batch_size,
        "retry": vars(cfg.retry),
        "insert_sink": vars(cfg.insert_sink),
        "batch_sink": None
        if cfg.batch_sink is None
        else {k: v for k, v in vars(cfg.batch_sink).items() if k != "schema"},
    }
    typer.echo(json.dumps(out, default=str, indent=2))


if __name__ == "__main__":
    app()
