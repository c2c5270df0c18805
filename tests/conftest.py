"""
Shared fixtures for the erp_sync test suite.
"""

import logging
import sqlite3

import pytest

from erp_sync.storage.db import SyncDatabase

ERP_SCHEMA = """
CREATE TABLE FIRMA (
    ID_FIRMY INTEGER PRIMARY KEY,
    NAZWA TEXT,
    NIP TEXT
);

CREATE TABLE BANKI (
    ID_BANKU INTEGER PRIMARY KEY,
    NAZWA TEXT,
    SWIFT TEXT
);

CREATE TABLE RACHUNEK_FIRMY (
    ID_RACHUNKU INTEGER PRIMARY KEY,
    ID_FIRMY INTEGER,
    ID_BANKU INTEGER,
    NAZWA TEXT,
    NUMER_RACHUNKU TEXT,
    SYM_WALUTY TEXT,
    AKTYWNY INTEGER
);
"""


def build_erp_database(path, companies=(), banks=(), accounts=()):
    """Create an ERP export with the given FIRMA, BANKI and RACHUNEK_FIRMY rows."""
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(ERP_SCHEMA)
        conn.executemany(
            "INSERT INTO FIRMA (ID_FIRMY, NAZWA, NIP) VALUES (?, ?, ?)", companies
        )
        conn.executemany(
            "INSERT INTO BANKI (ID_BANKU, NAZWA, SWIFT) VALUES (?, ?, ?)", banks
        )
        conn.executemany(
            """
            INSERT INTO RACHUNEK_FIRMY (
                ID_RACHUNKU, ID_FIRMY, ID_BANKU, NAZWA, NUMER_RACHUNKU,
                SYM_WALUTY, AKTYWNY
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            accounts,
        )
        conn.commit()
    finally:
        conn.close()
    return path


@pytest.fixture(autouse=True)
def reset_erp_sync_logger(monkeypatch):
    """Undo CLI logging setup so caplog sees erp_sync records in every test."""
    monkeypatch.setenv("ERP_SYNC_LOG_FILE", "none")
    logger = logging.getLogger("erp_sync")
    logger.handlers.clear()
    logger.propagate = True
    logger.disabled = False
    logger.setLevel(logging.NOTSET)
    yield
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.propagate = True
    logger.disabled = False
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def database():
    """Initialized in-memory record store."""
    db = SyncDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def erp_path(tmp_path):
    """ERP export with two companies, two banks and four bank accounts."""
    return build_erp_database(
        tmp_path / "erp.db",
        companies=[
            (1, "Acme Sp. z o.o.", "526-10-44-510"),
            (2, "Globex S.A.", "777 000 12 34"),
        ],
        banks=[
            (10, "PKO BP", "BPKOPLPW"),
            (20, "mBank", "BREXPLPW"),
        ],
        accounts=[
            (100, 1, 10, "Main", "12 1020 0000 0000 0000 0000 0001", "PLN", 1),
            (101, 1, 20, "Euro", "34 1140 0000 0000 0000 0000 0002", "EUR", 0),
            (102, 3, 10, "Orphan", "56 1020 0000 0000 0000 0000 0003", "PLN", 1),
            (103, 2, 20, "Dollar", "78 1140 0000 0000 0000 0000 0004", "XYZ", 1),
        ],
    )
