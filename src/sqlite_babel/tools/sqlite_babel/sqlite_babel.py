"""
sqlite_babel Tool

執行文學式程式文件中的 SQLite 區塊：組裝 sqlite3 命令列、代入文件變數、
以標準輸入送出查詢，並把輸出解析回表格或單一值。
"""

import asyncio
import logging
import shlex
from datetime import datetime
from pathlib import Path
from typing import Any, NoReturn

from fastapi import Request

from sqlite_babel.base.logging_config import SQLITE3_LOGGER, invocation_context
from sqlite_babel.config import DATA_DIR, DEFAULT_SQLITE3_COMMAND, MAX_INPUT_LENGTH, SQLITE3_COMMAND
from sqlite_babel.schemas import (
    ConfigurationError,
    ExecutionResult,
    SqliteExecutionError,
    UnsupportedFeatureError,
)
from sqlite_babel.security import check_database_access
from sqlite_babel.tools.base import registry
from sqlite_babel.tools.sqlite_babel.command import build_command
from sqlite_babel.tools.sqlite_babel.expand import expand_body
from sqlite_babel.tools.sqlite_babel.options import (
    OptionSet,
    get_value,
    has_option,
    normalize_options,
    parse_header_args,
    require_db,
    result_params,
)
from sqlite_babel.tools.sqlite_babel.result import interpret_result, is_raw_result, render_org_table
from sqlite_babel.utils import truncate_string

logger = logging.getLogger(__name__)
sqlite3_logger = logging.getLogger(SQLITE3_LOGGER)


def prep_session(session: str | None = None, options: OptionSet | None = None) -> NoReturn:
    """sqlite 區塊不支援持久 session，一律拋出錯誤"""
    raise UnsupportedFeatureError("sqlite sessions not yet implemented")


def _reject_session(options: OptionSet) -> None:
    """:session 只要出現（含不帶值的旗標）且不是 none 就拒絕"""
    if has_option(options, "session") and options["session"] != "none":
        prep_session(get_value(options, "session"), options)


async def run_sqlite3(argv: list[str], query: str) -> str:
    """
    啟動 sqlite3，以標準輸入送出查詢並等待結束

    Returns:
        str: 標準輸出

    Raises:
        SqliteExecutionError: 非零結束碼或有錯誤輸出
        OSError: 找不到執行檔
    """
    sqlite3_logger.info(f"▶️ {shlex.join(argv)} (stdin {len(query)} 字符)")

    proc = await asyncio.create_subprocess_exec(
        *argv,
        stdin=asyncio.subprocess.PIPE,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout_bytes, stderr_bytes = await proc.communicate(query.encode("utf-8"))

    stdout_text = stdout_bytes.decode("utf-8", errors="replace")
    stderr_text = stderr_bytes.decode("utf-8", errors="replace")

    if proc.returncode != 0 or stderr_text.strip():
        sqlite3_logger.warning(f"❌ returncode={proc.returncode}: {truncate_string(stderr_text.strip(), 200)}")
        raise SqliteExecutionError(argv, proc.returncode or 0, stderr_text)

    sqlite3_logger.debug(f"✅ returncode=0, stdout {len(stdout_text)} 字符")
    return stdout_text


async def execute_sqlite_block(
    body: str,
    options: OptionSet,
    variables: dict[str, Any] | None = None,
    command: str = DEFAULT_SQLITE3_COMMAND,
    data_dir: Path | None = None,
) -> Any:
    """
    執行一個 SQLite 區塊

    Args:
        body: 區塊內容（SQL）
        options: 區塊參數
        variables: 文件變數，值可為純量或表格
        command: sqlite3 執行檔
        data_dir: 表格變數 CSV 的存放目錄，None 表示系統暫存目錄

    Returns:
        原樣文字、單一值或表格

    Raises:
        ConfigurationError: 缺少 :db
        UnsupportedFeatureError: 要求 session
        SqliteExecutionError: sqlite3 執行失敗
    """
    _reject_session(options)
    argv = build_command(options, command)

    with invocation_context("sqlite3"):
        expansion = expand_body(body, options, variables, data_dir)
        try:
            output = await run_sqlite3(argv, expansion.body)
        finally:
            expansion.cleanup()

    return interpret_result(output, options)


def _parse_tool_args(args: dict[str, Any]) -> tuple[str, OptionSet, dict[str, Any]]:
    """從 tool 參數取出 body、區塊參數與變數；params 會覆蓋 header_args 的同名參數"""
    body = args.get("body")
    if not isinstance(body, str):
        raise ConfigurationError("必須提供有效的 body 參數")
    if len(body) > MAX_INPUT_LENGTH:
        raise ConfigurationError(f"Query body exceeds maximum length of {MAX_INPUT_LENGTH} characters")

    header_args = args.get("header_args") or ""
    if not isinstance(header_args, str):
        raise ConfigurationError("header_args 必須是字串")
    options, variables = parse_header_args(header_args)

    params = args.get("params") or {}
    extra_vars = args.get("vars") or {}
    if not isinstance(params, dict) or not isinstance(extra_vars, dict):
        raise ConfigurationError("params 與 vars 必須是物件")
    options.update(normalize_options(params))
    variables.update(extra_vars)

    return body, options, variables


_BLOCK_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "body": {
            "type": "string",
            "description": "區塊內容（SQL），可用 $name 引用變數",
        },
        "header_args": {
            "type": "string",
            "description": "org 風格的區塊參數，例如 ':db data.db :colnames yes :var n=3'",
        },
        "params": {
            "type": "object",
            "description": "區塊參數物件，例如 {\"db\": \"data.db\", \"header\": true, \"separator\": \"|\"}",
        },
        "vars": {
            "type": "object",
            "description": "文件變數；值為表格（二維陣列，'hline' 代表分隔線）時會轉存成 CSV 並代入檔案路徑",
        },
    },
    "required": ["body"],
}


@registry.register(
    name="sqlite_babel_execute",
    description="以 sqlite3 命令列執行文學式文件中的 SQLite 區塊，回傳解析後的表格或單一值。支援 :db、:header、:colnames、:separator、:nullvalue、:csv/:column/:line/:list/:html、:echo、:bail 與 :var。",
    input_schema=_BLOCK_INPUT_SCHEMA,
)
async def handle_sqlite_babel_execute(args: dict[str, Any], request: Request | None = None) -> ExecutionResult:
    """處理 sqlite_babel_execute 請求"""
    body, options, variables = _parse_tool_args(args)
    db = require_db(options)
    if request is not None:
        check_database_access(request, db)

    logger.info(f"執行 SQLite 區塊 ({len(body)} 字符, db={db})")
    start_time = datetime.now()

    try:
        value = await execute_sqlite_block(body, options, variables, SQLITE3_COMMAND, DATA_DIR)
    except SqliteExecutionError as e:
        return ExecutionResult(
            success=False,
            error_type=type(e).__name__,
            error_message=str(e),
            stderr=e.stderr,
            returncode=e.returncode,
            execution_time=f"{(datetime.now() - start_time).total_seconds():.3f}s",
            metadata={"db": db, "argv": e.argv},
        )
    except OSError as e:
        logger.exception(f"無法啟動 sqlite3: {e}")
        return ExecutionResult(
            success=False,
            error_type=type(e).__name__,
            error_message=str(e),
            stderr=str(e),
            returncode=-1,
            execution_time=f"{(datetime.now() - start_time).total_seconds():.3f}s",
            metadata={"db": db},
        )

    execution_time = (datetime.now() - start_time).total_seconds()
    raw = is_raw_result(result_params(options))
    return ExecutionResult(
        success=True,
        stdout=value if raw else render_org_table(value),
        returncode=0,
        execution_time=f"{execution_time:.3f}s",
        metadata={
            "db": db,
            "result_type": "raw" if raw else ("table" if isinstance(value, list) else "scalar"),
            "result": value,
        },
    )


@registry.register(
    name="sqlite_babel_expand",
    description="只展開 SQLite 區塊而不執行：回傳 sqlite3 命令列與代入變數後的查詢內容。表格變數的 CSV 檔保留到伺服器重新啟動。",
    input_schema=_BLOCK_INPUT_SCHEMA,
)
async def handle_sqlite_babel_expand(args: dict[str, Any]) -> ExecutionResult:
    """處理 sqlite_babel_expand 請求"""
    body, options, variables = _parse_tool_args(args)
    _reject_session(options)
    argv = build_command(options, SQLITE3_COMMAND)
    expansion = expand_body(body, options, variables, DATA_DIR)

    logger.info(f"展開 SQLite 區塊: {len(expansion.data_files)} 個資料檔")

    return ExecutionResult(
        success=True,
        stdout=expansion.body,
        returncode=0,
        metadata={
            "command": " ".join(argv),
            "argv": argv,
            "data_files": [str(path) for path in expansion.data_files],
        },
    )


@registry.register(
    name="sqlite_babel_prep_session",
    description="準備 SQLite 持久 session。sqlite 區塊不支援 session，此工具一律回報錯誤。",
    input_schema={
        "type": "object",
        "properties": {
            "session": {"type": "string", "description": "session 名稱"},
        },
        "required": [],
    },
)
async def handle_sqlite_babel_prep_session(args: dict[str, Any]) -> ExecutionResult:
    """處理 sqlite_babel_prep_session 請求"""
    session = args.get("session")
    logger.warning(f"拒絕準備 SQLite session: {session}")
    prep_session(session)
