from __future__ import annotations

import re
from dataclasses import dataclass

from sqlalchemy.engine import make_url

TEST_DB_NAME_RE = re.compile(r"test", re.IGNORECASE)
LOCAL_TEST_HOSTS = frozenset(
    {
        "localhost",
        "127.0.0.1",
        "::1",
        "postgres",
        "extra_packs_postgres",
    }
)
EXAMPLE_TEST_DB = "extra_packs_test"


@dataclass(frozen=True, slots=True)
class IntegrationDbSafetyResult:
    is_safe: bool
    reason: str
    database_name: str
    host: str


def _unsafe_reason(*, backend: str, db_name: str, host: str) -> str | None:
    if backend != "postgresql":
        return "Ledger integration tests run only against PostgreSQL."
    if not db_name:
        return "Database name is empty."
    if TEST_DB_NAME_RE.search(db_name) is None:
        return "Database name must contain 'test'."
    if host not in LOCAL_TEST_HOSTS:
        return f"Host '{host}' is not a local test host."
    return None


def assess_integration_db_safety(database_url: str) -> IntegrationDbSafetyResult:
    parsed = make_url(database_url)
    db_name = (parsed.database or "").strip()
    host = (parsed.host or "").strip().lower()

    reason = _unsafe_reason(backend=parsed.get_backend_name(), db_name=db_name, host=host)
    return IntegrationDbSafetyResult(
        is_safe=reason is None,
        reason=reason or "ok",
        database_name=db_name,
        host=host,
    )


def assert_safe_integration_db(database_url: str) -> None:
    result = assess_integration_db_safety(database_url)
    if result.is_safe:
        return

    raise RuntimeError(
        "Refusing to TRUNCATE ledger tables for integration tests.\n"
        f"Reason: {result.reason}\n"
        f"Resolved DB: name='{result.database_name}' host='{result.host}'\n"
        f"Use a dedicated local PostgreSQL database such as '{EXAMPLE_TEST_DB}'."
    )
