"""Utility modules for ThreadKeeper."""

from .tool_runner import (
    AppleScriptExecutor,
    PowerShellExecutor,
    ToolResult,
    escape_applescript_string,
    parse_json_output,
    run_tool,
)

__all__ = [
    "AppleScriptExecutor",
    "PowerShellExecutor",
    "ToolResult",
    "escape_applescript_string",
    "parse_json_output",
    "run_tool",
]
