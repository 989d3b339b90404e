"""
Tools 模組入口

載入 SQLite 區塊相關的 Tools 並註冊到 Registry
"""

import logging

from sqlite_babel.tools.base import ToolDefinition, ToolHandler, ToolRegistry, registry

# 載入 Tool 模組（副作用：自動註冊到 registry）
from sqlite_babel.tools.sqlite_babel import sqlite_babel  # noqa: F401

logger = logging.getLogger(__name__)
logger.info(f"🧰 已載入 {registry.get_tool_count()} 個 Tool")

__all__ = [
    "registry",
    "ToolRegistry",
    "ToolDefinition",
    "ToolHandler",
]
