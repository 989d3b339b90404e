"""
Tool Registry

以 decorator 註冊 MCP Tool；執行時先檢查 inputSchema 的必填參數，
並在獨立的呼叫編號（invocation）下執行 handler、記錄耗時。
"""

import inspect
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from fastapi import Request

from sqlite_babel.base.logging_config import invocation_context
from sqlite_babel.schemas import ConfigurationError, ExecutionResult, MCPError

logger = logging.getLogger(__name__)

ToolHandler = Callable[..., Awaitable[ExecutionResult]]


@dataclass
class ToolDefinition:
    """Tool 定義，包含 schema 與 handler"""

    name: str
    description: str
    input_schema: dict[str, Any]
    handler: ToolHandler

    @property
    def accepts_request(self) -> bool:
        """handler 是否宣告了 request 參數（需要依 API Key 檢查資料庫權限）"""
        return "request" in inspect.signature(self.handler).parameters

    @property
    def required_args(self) -> list[str]:
        return list(self.input_schema.get("required", []))

    def check_args(self, args: Any) -> None:
        """
        檢查 arguments 是物件且必填參數齊全

        Raises:
            ConfigurationError: 參數不是物件或缺少必填參數
        """
        if not isinstance(args, dict):
            raise ConfigurationError(f"Tool '{self.name}' arguments must be an object")
        missing = [name for name in self.required_args if name not in args]
        if missing:
            raise ConfigurationError(f"Tool '{self.name}' missing required arguments: {', '.join(missing)}")


class ToolRegistry:
    """Tool 註冊表：名稱 → ToolDefinition"""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}

    def register(self, name: str, description: str, input_schema: dict[str, Any]) -> Callable[[ToolHandler], ToolHandler]:
        """
        Decorator 用於註冊 Tool

        使用方式:
            @registry.register(
                name="sqlite_babel_execute",
                description="執行 SQLite 區塊",
                input_schema={...}
            )
            async def handle_execute(args: dict) -> ExecutionResult:
                ...

        Raises:
            ValueError: 名稱重複註冊
        """

        def decorator(handler: ToolHandler) -> ToolHandler:
            if name in self._tools:
                raise ValueError(f"Tool already registered: {name}")
            self._tools[name] = ToolDefinition(name=name, description=description, input_schema=input_schema, handler=handler)
            return handler

        return decorator

    def get(self, name: str) -> ToolDefinition:
        tool = self._tools.get(name)
        if tool is None:
            raise MCPError(-32601, f"Tool not found: {name}")
        return tool

    def list_tools(self) -> list[dict[str, Any]]:
        """依名稱排序列出所有 Tool 的 schema"""
        return [
            {"name": t.name, "description": t.description, "inputSchema": t.input_schema}
            for t in sorted(self._tools.values(), key=lambda t: t.name)
        ]

    async def execute(self, name: str, args: dict[str, Any], request: Request | None = None) -> ExecutionResult:
        """
        執行指定的 Tool

        Args:
            name: Tool 名稱
            args: Tool 參數
            request: FastAPI Request（用於資料庫權限檢查）

        Raises:
            MCPError: Tool 不存在
            ConfigurationError: 參數不符 inputSchema
        """
        tool = self.get(name)
        tool.check_args(args)

        with invocation_context(name) as invocation:
            start = time.perf_counter()
            try:
                if tool.accepts_request and request is not None:
                    result = await tool.handler(args, request=request)
                else:
                    result = await tool.handler(args)
            finally:
                logger.debug(f"⏱️ {invocation} 耗時 {time.perf_counter() - start:.3f}s")
        return result

    def get_tool_count(self) -> int:
        """取得已註冊的工具數量"""
        return len(self._tools)


# 全域註冊表，tools/ 下的模組在匯入時註冊到這裡
registry = ToolRegistry()
