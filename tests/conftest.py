"""Pytest configuration and fixtures for mini_rdbms tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Generator

import pytest
from prometheus_client import CollectorRegistry

from mini_rdbms.application import DatabaseEngine
from mini_rdbms.domain.entities import ColumnDef, ColumnType, TableSchema
from mini_rdbms.infrastructure.config import CatalogConfig, Config, StorageConfig
from mini_rdbms.infrastructure.logging import setup_logging
from mini_rdbms.infrastructure.metrics import MetricsRegistry


@pytest.fixture(scope="session", autouse=True)
def configure_logging() -> None:
    """Configure structured logging once, at debug level, for the whole run."""
    setup_logging(level="DEBUG", log_format="json")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def test_config(temp_dir: Path) -> Config:
    """Provide a test configuration with a temporary data directory."""
    return Config(
        storage=StorageConfig(
            data_dir=temp_dir / "data",
            sync_mode="none",  # Faster for tests
        ),
        catalog=CatalogConfig(seed_demo_data=False),
    )


@pytest.fixture
def metrics_registry() -> MetricsRegistry:
    """Provide a fresh metrics registry for each test."""
    # Use a separate registry to avoid conflicts between tests
    registry = CollectorRegistry(auto_describe=True)
    return MetricsRegistry(registry=registry)


@pytest.fixture
def accounts_schema() -> TableSchema:
    """accounts(id int, name string UNIQUE, balance int)."""
    return TableSchema.build(
        "accounts",
        [
            ColumnDef("id", ColumnType.INTEGER),
            ColumnDef("name", ColumnType.TEXT, is_unique=True),
            ColumnDef("balance", ColumnType.INTEGER),
        ],
    )


@pytest.fixture
def engine(
    test_config: Config, metrics_registry: MetricsRegistry
) -> Generator[DatabaseEngine, None, None]:
    """Provide a started engine on a temporary data directory."""
    db = DatabaseEngine.from_config(test_config, metrics=metrics_registry)
    db.start()
    yield db
    if db.is_started:
        db.stop()


# Markers for test categories
def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
