"""
資料模型定義

包含 ExecutionResult、MCPError 與 SQLite 區塊執行的錯誤類型
"""
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ExecutionResult:
    """統一的執行結果格式"""
    success: bool
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0
    execution_time: str = "0.000s"
    metadata: dict[str, Any] = field(default_factory=dict)
    error_type: str = ""
    error_message: str = ""

    def to_text_output(self) -> str:
        """轉換為人類可讀的文字格式"""
        lines: list[str] = []
        for key, value in self.metadata.items():
            # result 已經渲染在 stdout 中
            if value and key not in ["result", "argv"]:
                lines.append(f"📁 {key.replace('_', ' ').title()}: {value}")
        lines.append(f"⏱️ Execution Time: {self.execution_time}")
        lines.append(f"🔢 Return Code: {self.returncode}")
        if not self.success:
            lines.append(f"❌ Error: [{self.error_type}] {self.error_message}")
        if self.stdout:
            lines.append(f"📤 Standard Output:\n{self.stdout}")
        if self.stderr:
            lines.append(f"⚠️ Standard Error:\n{self.stderr}")
        return "\n".join(lines)


class MCPError(Exception):
    """MCP 協議專用的錯誤類型"""
    def __init__(
        self,
        code: int,
        message: str,
        data: dict[str, Any] | None = None
    ):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message)


class SqliteBabelError(Exception):
    """SQLite 區塊執行錯誤的基底類別，code 對應 JSON-RPC 錯誤碼"""
    code: int = -32603


class ConfigurationError(SqliteBabelError, ValueError):
    """區塊參數錯誤，例如缺少 :db，在啟動任何程序之前拋出"""
    code = -32602


class UnsupportedFeatureError(SqliteBabelError, NotImplementedError):
    """不支援的功能（持久 session）"""
    code = -32004


class SqliteExecutionError(SqliteBabelError):
    """sqlite3 執行失敗：非零結束碼或有錯誤輸出"""
    code = -32005

    def __init__(self, argv: list[str], returncode: int, stderr: str):
        self.argv = argv
        self.returncode = returncode
        self.stderr = stderr
        message = stderr.strip() or f"{argv[0]} exited with status {returncode}"
        super().__init__(message)
