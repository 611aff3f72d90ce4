# 数据库管理器测试

import sqlite3

import pytest

from db.manager import DatabaseManager


@pytest.fixture
def db():
    manager = DatabaseManager(":memory:", auto_connect=True)
    manager.execute_single("CREATE TABLE kv (k TEXT PRIMARY KEY, v TEXT)")
    yield manager
    manager.close()


class TestDatabaseManager:
    """连接与事务测试"""

    def test_requires_connection(self):
        manager = DatabaseManager(":memory:")
        with pytest.raises(ConnectionError):
            manager.execute_single("SELECT 1")

    def test_transaction_rolls_back(self, db):
        with pytest.raises(sqlite3.IntegrityError):
            with db.transaction() as conn:
                conn.execute("INSERT INTO kv VALUES ('a', '1')")
                conn.execute("INSERT INTO kv VALUES ('a', '2')")

        assert db.execute_single("SELECT COUNT(*) FROM kv").fetchone()[0] == 0

    def test_file_database_creates_directory(self, tmp_path):
        path = tmp_path / "nested" / "catering.db"
        manager = DatabaseManager(str(path), auto_connect=True)
        try:
            assert path.exists()
            assert manager.execute_single("PRAGMA journal_mode").fetchone()[0] == "wal"
        finally:
            manager.close()
