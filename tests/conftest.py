"""
Pytest fixtures for the GST engine test suite.

Provides:
- Structured logging capture
- The bundled sample catalog as an in-memory tree and registry
- An in-memory SQLite session for selector tests
"""

import json
import logging
from io import StringIO

import pytest

from gst_config import SAMPLE_CATALOG_PATH, load_catalog
from gst_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from gst_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture gst_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, engine):
            engine.compute_tax(...)
            logs = captured_logs()
            assert any(r["message"] == "tax_computation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("gst_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Catalog fixtures
# =============================================================================


@pytest.fixture(scope="session")
def sample_catalog():
    """The bundled sample catalog (gst_config/catalogs/sample.yaml)."""
    return load_catalog(SAMPLE_CATALOG_PATH)


@pytest.fixture
def sample_tree(sample_catalog):
    return sample_catalog.build_tree()


@pytest.fixture
def sample_registry(sample_catalog):
    return sample_catalog.build_registry()


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def session():
    """Fresh in-memory SQLite database with the catalog tables."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    db_session = get_session()
    try:
        yield db_session
    finally:
        db_session.close()
        drop_tables()
        reset_engine()
