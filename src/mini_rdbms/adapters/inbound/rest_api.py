"""REST API adapter for the relational engine.

This module provides a thin FastAPI-based REST API over the engine's
query surface: enumerate and create databases, enumerate tables, fetch a
table's rows and execute a command against a named database.

Endpoints:
    GET  /health - Health check
    GET  /stats - Engine statistics
    GET  /api/dbs - List databases
    POST /api/dbs/{name} - Create a database
    GET  /api/dbs/{name}/tables - List tables of a database
    GET  /api/dbs/{name}/tables/{table} - All rows of a table
    POST /api/query?db=name - Execute a command

Handlers are synchronous and run in FastAPI's worker thread pool.

Usage:
    from mini_rdbms.adapters.inbound.rest_api import create_app
    from mini_rdbms.application import DatabaseEngine

    engine = DatabaseEngine(data_dir="/path/to/data")
    engine.start()

    app = create_app(engine)
    # Run with uvicorn: uvicorn app:app --host 0.0.0.0 --port 5220

References:
    - FastAPI documentation: https://fastapi.tiangolo.com/
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from mini_rdbms import __version__
from mini_rdbms.application import DatabaseEngine, ExecutionResult
from mini_rdbms.domain.errors import (
    DatabaseExistsError,
    DatabaseNotFoundError,
    EngineError,
    SchemaValidationError,
    TableNotFoundError,
)


class QueryRequest(BaseModel):
    """Request model for command execution."""

    sql: str = Field(..., description="Command to execute")


class QueryResponse(BaseModel):
    """Response model for command execution."""

    success: bool = Field(..., description="Whether the command succeeded")
    message: str = Field("", description="Status or error message")
    error_kind: str | None = Field(None, description="Error kind when the command failed")
    rows: list[dict[str, Any]] = Field(default_factory=list, description="Result rows")
    columns: list[str] = Field(default_factory=list, description="Column names")
    affected_rows: int = Field(0, description="Number of affected rows")


class DatabaseResponse(BaseModel):
    """Response model for database creation."""

    database: str = Field(..., description="Name of the created database")
    message: str = Field("", description="Status message")


class StatsResponse(BaseModel):
    """Response model for engine statistics."""

    started: bool = Field(..., description="Whether the engine is started")
    data_dir: str = Field(..., description="Data directory path")
    default_database: str = Field(..., description="Database used when none is named")
    databases: dict[str, dict[str, int]] = Field(
        default_factory=dict, description="Live row count per table, per database"
    )


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="Health status")
    version: str = Field(..., description="API version")


def _result_to_response(result: ExecutionResult) -> QueryResponse:
    """Convert ExecutionResult to QueryResponse."""
    return QueryResponse(
        success=result.success,
        message=result.message,
        error_kind=result.error_kind,
        rows=result.to_dicts(),
        columns=result.columns,
        affected_rows=result.affected_rows,
    )


def _http_error(error: EngineError) -> HTTPException:
    """Map a catalog error to an HTTP error."""
    if isinstance(error, (DatabaseNotFoundError, TableNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))
    if isinstance(error, DatabaseExistsError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))


def create_app(engine: DatabaseEngine) -> FastAPI:
    """Create a FastAPI application for the engine.

    Args:
        engine: The started engine to serve.

    Returns:
        A configured FastAPI application.
    """
    app = FastAPI(
        title="mini_rdbms API",
        description="REST API for executing commands against named databases",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _require_started() -> None:
        if not engine.is_started:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Engine not started"
            )

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="healthy" if engine.is_started else "unhealthy",
            version=__version__,
        )

    @app.get("/stats", response_model=StatsResponse, tags=["Stats"])
    def get_stats() -> StatsResponse:
        """Get engine statistics."""
        _require_started()
        stats = engine.get_stats()
        return StatsResponse(
            started=stats["started"],
            data_dir=stats["data_dir"],
            default_database=stats["default_database"],
            databases=stats.get("databases", {}),
        )

    @app.get("/api/dbs", response_model=list[str], tags=["Catalog"])
    def list_databases() -> list[str]:
        """List database names."""
        _require_started()
        return engine.list_databases()

    @app.post(
        "/api/dbs/{name}",
        response_model=DatabaseResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["Catalog"],
    )
    def create_database(name: str) -> DatabaseResponse:
        """Create an empty database."""
        _require_started()
        try:
            engine.create_database(name)
        except (DatabaseExistsError, SchemaValidationError) as e:
            raise _http_error(e) from e
        return DatabaseResponse(database=name, message=f"OK: Database '{name}' created")

    @app.get("/api/dbs/{name}/tables", response_model=list[str], tags=["Catalog"])
    def list_tables(name: str) -> list[str]:
        """List the tables of a database."""
        _require_started()
        try:
            return engine.list_tables(name)
        except DatabaseNotFoundError as e:
            raise _http_error(e) from e

    @app.get(
        "/api/dbs/{name}/tables/{table}",
        response_model=list[dict[str, Any]],
        tags=["Catalog"],
    )
    def fetch_rows(name: str, table: str) -> list[dict[str, Any]]:
        """Return every row of a table as a column -> value mapping."""
        _require_started()
        try:
            return engine.fetch_rows(name, table)
        except (DatabaseNotFoundError, TableNotFoundError) as e:
            raise _http_error(e) from e

    @app.post("/api/query", response_model=QueryResponse, tags=["Query"])
    def run_query(
        request: QueryRequest,
        response: Response,
        db: str | None = Query(None, description="Database name (default database if omitted)"),
    ) -> QueryResponse:
        """Execute one command.

        Failed commands are answered with 400 and the error kind in the body.
        """
        _require_started()
        database = db or engine.default_database
        if database not in engine.list_databases():
            raise _http_error(DatabaseNotFoundError(database))

        result = engine.execute(request.sql, database)
        if not result.success:
            response.status_code = status.HTTP_400_BAD_REQUEST
        return _result_to_response(result)

    return app


def run_server(
    engine: DatabaseEngine,
    host: str = "0.0.0.0",
    port: int = 5220,
) -> None:
    """Run the REST API server.

    Args:
        engine: The started engine.
        host: Host to bind to.
        port: Port to bind to.
    """
    import uvicorn

    app = create_app(engine)
    uvicorn.run(app, host=host, port=port)
