"""mailintake command-line interface.

What:
  Provide a Typer-based entry point with two commands: ``fetch`` runs one
  intake pass and optionally spools the raw messages to disk, ``check`` opens
  the configured mailbox and reports how many messages it holds.

Why:
  Intake is scheduled from cron. A single command with shell-friendly exit
  codes keeps that wiring trivial, and ``check`` lets operators validate
  credentials and TLS options before the first real pass deletes anything.

How:
  Load the runtime configuration, delegate to :func:`mailintake.intake.run_intake`
  or :func:`mailintake.intake.check_connection`, and convert every failure into
  a structured error log plus exit code ``1``.

Interfaces:
  ``app`` (Typer application), ``fetch``, ``check``, ``main``.

Invariants & Safety:
  - Exit codes follow shell expectations (``0`` success, ``1`` failure).
  - A message is written to the spool before it is marked for deletion, and
    nothing is deleted when no spool directory is configured.
  - Spool files appear under their final name only once fully written.
  - The mailbox password never appears in output.
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from .config.loader import load_runtime_config
from .errors import ConfigLoadError, IntakeError
from .intake import MessageSink, check_connection, run_intake
from .mail import Fetched
from .utils.ids import new_run_id, spool_name
from .utils.logging import get_logger


app = typer.Typer(help="Pull raw email from an IMAP or POP3 mailbox")

LOGGER = get_logger("mailintake.cli")


def _spool_writer(directory: Path, run_id: str) -> MessageSink:
    def write(message: Fetched) -> None:
        path = directory / spool_name(run_id, message.index, message.raw)
        partial_path = path.with_suffix(".part")
        partial_path.write_bytes(message.raw)
        partial_path.replace(path)

    return write


@app.command("fetch")
def fetch(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
    debug: Optional[bool] = typer.Option(
        None,
        "--debug/--no-debug",
        help="Replay unseen mail regardless of read state (overrides config)",
    ),
    spool_dir: Optional[Path] = typer.Option(
        None, "--spool-dir", help="Write fetched messages here as .eml files"
    ),
    keep: bool = typer.Option(False, "--keep", help="Never delete fetched messages"),
) -> None:
    """Run a single intake pass over the configured mailbox.

    Each fetched message is written to the spool before it is marked for
    deletion. Without a spool directory nothing is deleted.
    """

    run_id = new_run_id()
    log = LOGGER.bind(run_id=run_id)
    try:
        runtime = load_runtime_config(config)
    except ConfigLoadError as exc:
        log.error("Intake pass failed", error=str(exc))
        raise typer.Exit(code=1) from exc

    target = spool_dir or (Path(runtime.intake.spool_dir) if runtime.intake.spool_dir else None)
    delete = runtime.intake.delete_after_fetch and not keep
    sink: Optional[MessageSink] = None
    if target is None:
        if delete:
            log.warning("No spool directory configured; fetched messages are kept")
        delete = False
    else:
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            log.error("Spool directory unavailable", path=str(target), error=str(exc))
            raise typer.Exit(code=1) from exc
        sink = _spool_writer(target, run_id)

    try:
        report = run_intake(
            runtime,
            debug=debug,
            delete_after_fetch=delete,
            sink=sink,
            logger=log,
        )
    except (ConfigLoadError, IntakeError) as exc:
        log.error("Intake pass failed", error=str(exc))
        raise typer.Exit(code=1) from exc

    spooled = len(report.fetched) if sink is not None else 0
    log.info("Intake run complete", spooled=spooled, **report.metrics())
    typer.echo(
        f"Fetched {len(report.fetched)} of {report.total} messages "
        f"({len(report.skipped)} already read, {len(report.failed)} failed, "
        f"{len(report.deleted)} deleted)"
    )
    if report.sink_error is not None:
        typer.echo(f"Spool write failed: {report.sink_error}", err=True)
    if report.failed or report.sink_error is not None:
        raise typer.Exit(code=1)


@app.command("check")
def check(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to config.yaml"),
) -> None:
    """Open the configured mailbox and report its message count."""

    try:
        runtime = load_runtime_config(config)
        count = check_connection(runtime, logger=LOGGER)
    except (ConfigLoadError, IntakeError) as exc:
        LOGGER.error("Connection check failed", error=str(exc))
        raise typer.Exit(code=1) from exc
    server = runtime.mailserver
    typer.echo(f"Connected to {server.host}:{server.port} ({server.protocol}): {count} messages")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
