# 数据库连接和事务管理的核心组件

import sqlite3
import logging
import os
from typing import List, Optional
from contextlib import contextmanager


class DatabaseManager:
    """
    数据库管理器

    负责SQLite连接管理、事务处理和基础执行。
    每个请求持有一个独立实例，跨请求的协调只通过数据库行完成。
    """

    def __init__(self, db_path: str, auto_connect: bool = False, busy_timeout: float = 5.0):
        """
        Args:
            db_path: 数据库文件路径，':memory:' 为内存库
            auto_connect: 是否立即连接
            busy_timeout: 等待其他连接释放写锁的秒数
        """
        self.db_path = db_path
        self.busy_timeout = busy_timeout
        self.conn: Optional[sqlite3.Connection] = None
        self._is_connected = False

        self.logger = logging.getLogger(self.__class__.__name__)

        if auto_connect:
            self.connect()

    @property
    def is_memory(self) -> bool:
        return self.db_path == ':memory:'

    def connect(self) -> sqlite3.Connection:
        """
        建立数据库连接

        Raises:
            ConnectionError: 连接失败时抛出
        """
        try:
            if self.conn is not None:
                self.logger.warning("数据库连接已存在，先关闭现有连接")
                self.close()

            if not self.is_memory:
                db_dir = os.path.dirname(self.db_path)
                if db_dir and not os.path.exists(db_dir):
                    os.makedirs(db_dir, exist_ok=True)
                    self.logger.info(f"创建数据库目录: {db_dir}")

            self.conn = sqlite3.connect(
                self.db_path,
                timeout=self.busy_timeout,
                check_same_thread=False
            )
            self.conn.row_factory = sqlite3.Row
            self._is_connected = True
            self.logger.debug(f"成功连接到数据库: {self.db_path}")

            self._configure_database()

            return self.conn

        except sqlite3.Error as e:
            self.logger.error(f"连接数据库失败: {str(e)}")
            raise ConnectionError(f"无法连接到数据库 {self.db_path}: {str(e)}")

    def close(self):
        if self.conn is not None:
            try:
                self.conn.close()
                self.logger.debug("数据库连接已关闭")
            except sqlite3.Error as e:
                self.logger.error(f"关闭数据库连接时发生错误: {str(e)}")
            finally:
                self.conn = None
                self._is_connected = False

    def _configure_database(self):
        """
        配置SQLite参数
        """
        pragmas = ["PRAGMA foreign_keys = ON"]
        if not self.is_memory:
            pragmas += [
                "PRAGMA journal_mode = WAL",
                "PRAGMA synchronous = NORMAL"
            ]

        try:
            for pragma in pragmas:
                self.conn.execute(pragma)
            self.logger.debug("数据库参数配置完成")
        except sqlite3.Error as e:
            self.logger.warning(f"配置数据库参数时出现警告: {str(e)}")

    def is_connected(self) -> bool:
        return self._is_connected and self.conn is not None

    def ensure_connected(self):
        """
        Raises:
            ConnectionError: 连接不可用时抛出
        """
        if not self.is_connected():
            raise ConnectionError("数据库未连接，请先调用connect()方法")

    def execute_single(self, query: str, params: List = None) -> sqlite3.Cursor:
        """
        执行单条SQL，写语句自动提交

        Returns:
            游标对象
        """
        self.ensure_connected()

        try:
            cursor = self.conn.execute(query, params or [])

            if query.lstrip().upper().startswith(('CREATE', 'DROP', 'ALTER', 'INSERT', 'UPDATE', 'DELETE')):
                self.conn.commit()

            return cursor

        except sqlite3.Error as e:
            self.logger.error(f"执行SQL失败: {query.strip()[:100]}..., 错误: {str(e)}")
            raise

    @contextmanager
    def transaction(self):
        """
        事务上下文管理器

        Usage:
            with db_manager.transaction() as conn:
                conn.execute("INSERT ...")
                conn.execute("INSERT ...")
        """
        self.ensure_connected()

        try:
            yield self.conn
            self.conn.commit()
        except Exception as e:
            self.logger.error(f"事务执行失败，回滚: {str(e)}")
            try:
                self.conn.rollback()
            except sqlite3.Error as rollback_error:
                self.logger.error(f"事务回滚失败: {str(rollback_error)}")
            raise
