"""
SQLite Babel Tool

以 sqlite3 命令列執行文學式文件中的 SQLite 區塊
"""

from sqlite_babel.tools.sqlite_babel.sqlite_babel import (
    execute_sqlite_block,
    handle_sqlite_babel_execute,
    handle_sqlite_babel_expand,
    handle_sqlite_babel_prep_session,
    prep_session,
)

__all__ = [
    "execute_sqlite_block",
    "handle_sqlite_babel_execute",
    "handle_sqlite_babel_expand",
    "handle_sqlite_babel_prep_session",
    "prep_session",
]
