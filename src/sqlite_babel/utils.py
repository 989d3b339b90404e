"""
輔助函數工具箱

包含 MCP 回應格式化功能
"""
import logging
from typing import Any

from sqlite_babel.schemas import ExecutionResult

logger = logging.getLogger(__name__)


def format_tool_result(result: ExecutionResult) -> dict[str, Any]:
    """
    格式化 ExecutionResult 為 MCP 回應格式

    區塊結果（單一值或表格）另外放在 structuredContent，方便文件端直接取用。

    Args:
        result: 執行結果

    Returns:
        MCP 格式的字典
    """
    text_output = result.to_text_output()
    response: dict[str, Any] = {
        "content": [{"type": "text", "text": text_output}],
        "isError": not result.success
    }
    if result.metadata:
        response["metadata"] = result.metadata
        if "result" in result.metadata:
            response["structuredContent"] = {"result": result.metadata["result"]}

    logger.info(
        f"📊 MCP 回覆格式化完成 | "
        f"文本長度: {len(text_output):,} 字符 | "
        f"成功: {result.success} | "
        f"DB: {result.metadata.get('db', 'unknown')}"
    )

    return response


def truncate_string(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """截斷過長的字串"""
    if len(text) > max_length:
        return text[:max_length] + suffix
    return text
