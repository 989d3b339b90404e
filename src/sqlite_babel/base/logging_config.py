"""
日誌設定模組

控制台顏色輸出與檔案輪替之外，每筆紀錄都帶有目前的呼叫編號（invocation），
同一次 Tool 呼叫、同一次 sqlite3 執行的紀錄可以串在一起查看。
sqlite3 子程序的命令列與錯誤輸出另外記錄在 SQLITE3_LOGGER，可單獨調整等級。
"""

import contextvars
import itertools
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

# 這些套件的除錯訊息太多，統一降到 INFO
NOISY_LOGGERS = ["asyncio", "uvicorn.access", "httpx", "httpcore", "multipart"]

# sqlite3 子程序專用 logger：argv、結束碼、stderr
SQLITE3_LOGGER = "sqlite_babel.sqlite3"

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FORMAT = "[%(asctime)s][%(levelname)-8s][%(invocation)s][%(name)s:%(lineno)d] %(message)s"

# 不在任何呼叫中時顯示的編號
NO_INVOCATION = "-"

_invocation: contextvars.ContextVar[str] = contextvars.ContextVar("sqlite_babel_invocation", default=NO_INVOCATION)
_invocation_counter = itertools.count(1)


def current_invocation() -> str:
    """取得目前的呼叫編號"""
    return _invocation.get()


@contextmanager
def invocation_context(label: str) -> Iterator[str]:
    """
    在區塊內設定呼叫編號，例如 "sqlite_babel_execute#12"

    巢狀使用時沿用外層編號，只在後面附加標籤，
    離開區塊後還原。asyncio task 會各自複製 context，互不干擾。
    """
    outer = _invocation.get()
    if outer == NO_INVOCATION:
        invocation = f"{label}#{next(_invocation_counter)}"
    else:
        invocation = f"{outer}/{label}"
    token = _invocation.set(invocation)
    try:
        yield invocation
    finally:
        _invocation.reset(token)


class InvocationFilter(logging.Filter):
    """把目前的呼叫編號寫入 record.invocation"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.invocation = _invocation.get()
        return True


# ANSI 256 色：(前景, 背景)
_LEVEL_COLORS = {
    logging.DEBUG: (7, None),
    logging.INFO: (2, None),
    logging.WARNING: (3, None),
    logging.ERROR: (1, None),
    logging.CRITICAL: (6, 1),
}


class ColoredFormatter(logging.Formatter):
    """控制台格式化器：依等級上色，sqlite3 子程序的紀錄以洋紅色標出 logger 名稱"""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        fg, bg = _LEVEL_COLORS.get(record.levelno, (None, None))
        codes = [f"38;5;{fg}"] if fg is not None else []
        if bg is not None:
            codes.append(f"48;5;{bg}")
        if record.name == SQLITE3_LOGGER:
            message = message.replace(SQLITE3_LOGGER, f"\033[38;5;5m{SQLITE3_LOGGER}\033[{';'.join(codes) or '0'}m", 1)
        if not codes:
            return message
        return f"\033[{';'.join(codes)}m{message}\033[0m"


def setup_logging(
    log_file: str = "sqlite_babel.log",
    console_log_level: int = logging.DEBUG,
    file_log_level: int = logging.WARNING,
    sqlite3_log_level: int = logging.DEBUG,
    log_dir: str | None = None,
) -> None:
    """
    設定全域日誌系統

    Args:
        log_file: 日誌檔案名稱（相對於 log_dir）
        console_log_level: 控制台等級，logging.NOTSET 表示不輸出
        file_log_level: 檔案等級，logging.NOTSET 表示不寫檔
        sqlite3_log_level: sqlite3 子程序 logger 的等級
        log_dir: 日誌目錄，預設為專案根目錄的 logs/
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    invocation_filter = InvocationFilter()

    if file_log_level != logging.NOTSET:
        log_dir_path = Path(log_dir) if log_dir else Path(__file__).parent.parent.parent.parent / "logs"
        try:
            log_dir_path.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                filename=str(log_dir_path / log_file),
                maxBytes=10 * 1024 * 1024,  # 10 MB
                backupCount=5,
                encoding="utf-8",
            )
            file_handler.setLevel(file_log_level)
            file_handler.addFilter(invocation_filter)
            file_handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
            root_logger.addHandler(file_handler)
        except OSError as e:
            sys.stderr.write(f"警告: 無法建立日誌檔案處理器: {e}\n")

    if console_log_level != logging.NOTSET:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(console_log_level)
        console_handler.addFilter(invocation_filter)
        formatter_class = logging.Formatter if sys.platform == "win32" else ColoredFormatter
        console_handler.setFormatter(formatter_class(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(console_handler)

    for log_name in NOISY_LOGGERS:
        logging.getLogger(log_name).setLevel(logging.INFO)
    logging.getLogger(SQLITE3_LOGGER).setLevel(sqlite3_log_level)

    if root_logger.handlers:
        root_logger.debug("日誌系統設定完成")
