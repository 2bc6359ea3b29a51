"""
Pytest configuration and fixtures for mismo-conformance tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import os
import pytest
from typing import Generator
from testcontainers.postgres import PostgresContainer
import psycopg

from mismo_conformance.core.models import CanonicalDeal
from mismo_conformance.core.rules import PreflightValidator
from mismo_conformance.core.schema import SchemaPackRegistry
from mismo_conformance.settings import PipelineSettings
from mismo_conformance.storage.entity_store import InMemoryEntityStore
from mismo_conformance.storage.run_store import InMemoryRunStore

STANDARD_PACK_ID = "PACK_A_GENERIC_MISMO_34_B324"
STRICT_PACK_ID = "PACK_B_DU_ULAD_STRICT_34_B324"


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that test the full pipeline"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance with initialized database
    """
    container = PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_pipeline",
        password="test_password",
        dbname="test_mismo_conformance",
        driver=None,
    )
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Docker is not available: {e}")

    try:
        # Run init script
        init_sql_path = os.path.join(
            os.path.dirname(os.path.dirname(__file__)),
            "docker",
            "init-db.sql"
        )

        with open(init_sql_path, 'r') as f:
            init_sql = f.read()

        conn_url = container.get_connection_url()
        with psycopg.connect(conn_url) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield container
    finally:
        container.stop()


@pytest.fixture(scope="function")
def db_connection(postgres_container) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a database connection for a single test

    Args:
        postgres_container: PostgreSQL container fixture

    Yields:
        psycopg Connection object
    """
    conn_url = postgres_container.get_connection_url()
    with psycopg.connect(conn_url) as conn:
        yield conn
        # Rollback any uncommitted changes after test
        conn.rollback()


@pytest.fixture(scope="function")
def clean_db(db_connection) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a clean database by truncating all tables before each test

    Args:
        db_connection: Database connection fixture

    Yields:
        psycopg Connection object with clean database
    """
    with db_connection.cursor() as cur:
        cur.execute(
            "TRUNCATE TABLE pipeline_audit_log, run_artifact, conformance_report, mismo_run CASCADE"
        )
        db_connection.commit()

    yield db_connection


# =======================
# PIPELINE FIXTURES
# =======================

@pytest.fixture(scope="session")
def registry() -> SchemaPackRegistry:
    """Bundled schema packs"""
    return SchemaPackRegistry.from_yaml()


@pytest.fixture(scope="session")
def standard_pack(registry):
    return registry.resolve(STANDARD_PACK_ID)


@pytest.fixture(scope="session")
def strict_pack(registry):
    return registry.resolve(STRICT_PACK_ID)


@pytest.fixture(scope="session")
def preflight() -> PreflightValidator:
    """Preflight validator with the bundled rules"""
    return PreflightValidator.from_yaml()


@pytest.fixture
def settings() -> PipelineSettings:
    """Settings with short timeouts so retry tests stay fast"""
    return PipelineSettings(fetch_timeout=2.0, fetch_retries=3, retry_delay=0.0)


@pytest.fixture
def run_store() -> InMemoryRunStore:
    return InMemoryRunStore()


@pytest.fixture
def sample_deal_data() -> dict:
    """
    A complete purchase deal that passes preflight for every bundled pack

    Returns:
        Deal as a plain dict (copy freely per test)
    """
    return {
        "deal_reference": "DEAL-2024-0001",
        "loan": {
            "loan_amount": "350000",
            "interest_rate": "6.875",
            "loan_term_months": 360,
            "loan_purpose": "Purchase",
            "mortgage_type": "Conventional",
            "amortization_type": "Fixed",
            "lien_priority": "FirstLien",
            "application_date": "2024-03-15",
        },
        "borrowers": [
            {
                "first_name": "Ada",
                "last_name": "Byron",
                "email": "ada.byron@example.com",
                "phone": "5125550100",
                "marital_status": "Married",
                "birth_date": "1985-12-10",
                "ssn": "123-45-6789",
            }
        ],
        "properties": [
            {
                "street": "12 Elm St",
                "city": "Austin",
                "state": "TX",
                "postal_code": "78701",
                "county": "Travis",
                "property_type": "Detached",
                "usage_type": "PrimaryResidence",
                "appraised_value": "410000",
                "purchase_price": "400000",
            }
        ],
        "fees": [
            {"fee_type": "AppraisalFee", "amount": "550", "paid_to": "Lender"},
        ],
        "extensions": {"dscr_ratio": "1.25"},
    }


@pytest.fixture
def sample_deal(sample_deal_data) -> CanonicalDeal:
    return CanonicalDeal(**sample_deal_data)


@pytest.fixture
def entity_store(sample_deal) -> InMemoryEntityStore:
    """Entity store holding the sample deal"""
    return InMemoryEntityStore([sample_deal])


# =======================
# FILE FIXTURES
# =======================

@pytest.fixture(scope="session")
def test_data_dir() -> str:
    """
    Get path to test data fixtures directory

    Returns:
        Path to tests/fixtures directory
    """
    return os.path.join(os.path.dirname(__file__), "fixtures")


@pytest.fixture(scope="session")
def foreign_document(test_data_dir) -> bytes:
    """A counterparty document with content outside the path table"""
    with open(os.path.join(test_data_dir, "inbound_with_unmapped.xml"), "rb") as f:
        return f.read()


# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture
def test_env_vars(monkeypatch, test_data_dir) -> dict:
    """
    Set test environment variables

    Reads tests/fixtures/test.env and sets each variable for the duration of one test
    """
    from dotenv import dotenv_values

    values = dotenv_values(os.path.join(test_data_dir, "test.env"))
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    return values
