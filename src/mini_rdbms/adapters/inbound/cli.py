"""Command-line interface for the relational engine.

Commands:
    repl     Interactive line reader; ``exit`` quits, blank lines are ignored
    execute  Run one command and print its result
    serve    Run the REST API (and the Prometheus metrics endpoint)

Configuration comes from ``MINI_RDBMS_*`` environment variables.
"""

from __future__ import annotations

import sys
from typing import Callable, Optional

import typer

from mini_rdbms.application import DatabaseEngine
from mini_rdbms.infrastructure.config import Config, get_config
from mini_rdbms.infrastructure.logging import setup_logging
from mini_rdbms.infrastructure.metrics import setup_metrics
from mini_rdbms.infrastructure.tracing import setup_tracing
from mini_rdbms.ports.inbound import QueryService

app = typer.Typer(help="mini_rdbms: a small file-backed relational engine.")

PROMPT = "mini_rdbms> "
EXIT_COMMANDS = frozenset({"exit", "quit"})


def _load_config() -> Config:
    config = get_config()
    setup_logging(
        config.observability.log_level,
        config.observability.log_format,
        service=config.observability.otel_service_name,
    )
    return config


def run_repl(
    engine: QueryService,
    database: str | None = None,
    input_fn: Callable[[str], str] = input,
    output_fn: Callable[[str], None] = print,
) -> int:
    """Read commands line by line and print each result.

    Stops on ``exit``/``quit`` or end of input.

    Returns:
        Number of commands executed.
    """
    executed = 0
    while True:
        try:
            line = input_fn(PROMPT)
        except EOFError:
            break

        command = line.strip()
        if not command:
            continue
        if command.lower() in EXIT_COMMANDS:
            break

        result = engine.execute(command, database)
        output_fn(result.to_text())
        executed += 1
    return executed


@app.command()
def repl(
    db: Optional[str] = typer.Option(None, "--db", "-d", help="Database to run commands against."),
) -> None:
    """
    Start an interactive session.
    """
    config = _load_config()
    with DatabaseEngine.from_config(config) as engine:
        typer.echo(f"Connected to database '{db or engine.default_database}'. Type 'exit' to quit.")
        run_repl(engine, db, output_fn=typer.echo)


@app.command()
def execute(
    sql: str = typer.Argument(..., help="Command to execute, e.g. \"SELECT * FROM users\"."),
    db: Optional[str] = typer.Option(None, "--db", "-d", help="Database to run the command against."),
) -> None:
    """
    Execute one command and print the result.
    """
    config = _load_config()
    with DatabaseEngine.from_config(config) as engine:
        result = engine.execute(sql, db)
        typer.echo(result.to_text())
    if not result.success:
        raise typer.Exit(code=1)


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Host to bind (default from settings)."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to bind (default from settings)."),
) -> None:
    """
    Serve the REST API.
    """
    from mini_rdbms.adapters.inbound.rest_api import run_server

    config = _load_config()
    metrics = setup_metrics(config.server.metrics_port)
    setup_tracing(config.observability.otel_service_name, config.observability.otel_endpoint)

    with DatabaseEngine.from_config(config, metrics=metrics) as engine:
        run_server(engine, host or config.server.host, port or config.server.port)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
