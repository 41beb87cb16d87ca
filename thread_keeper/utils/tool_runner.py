"""Bounded execution of OS automation tools (osascript, PowerShell, mdfind)."""

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from ..exceptions import (
    MalformedOutputError,
    ToolError,
    ToolExitError,
    ToolTimeoutError,
    ToolUnavailableError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


def escape_applescript_string(text: str) -> str:
    """
    Escape special characters for AppleScript string literals.

    Args:
        text: String to escape

    Returns:
        Escaped string safe for use in AppleScript
    """
    # Escape backslashes first (must be first)
    text = text.replace("\\", "\\\\")
    text = text.replace('"', '\\"')
    text = text.replace("\n", "\\n")
    text = text.replace("\r", "\\r")
    text = text.replace("\t", "\\t")
    return text


@dataclass(frozen=True)
class ToolResult:
    """
    Outcome of one tool invocation.

    Either ``output`` holds the trimmed stdout of a successful run, or
    ``failure`` holds a ``ToolError`` describing why it did not succeed.
    Exit codes and raw stderr never travel past this object.
    """
    output: str = ""
    failure: Optional[ToolError] = None

    @property
    def ok(self) -> bool:
        return self.failure is None

    def raise_for_failure(self) -> str:
        """Return the output, or raise the recorded failure."""
        if self.failure is not None:
            raise self.failure
        return self.output


def run_tool(argv: Sequence[str], timeout: float = DEFAULT_TIMEOUT) -> ToolResult:
    """
    Run an external tool with a mandatory timeout.

    Args:
        argv: Program and arguments (never passed through a shell)
        timeout: Seconds before the process is killed

    Returns:
        ToolResult with stdout on success, or a ToolError on failure
    """
    name = argv[0] if argv else "<empty>"
    try:
        result = subprocess.run(
            list(argv),
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except FileNotFoundError:
        return ToolResult(failure=ToolUnavailableError(f"{name} is not installed"))
    except PermissionError as e:
        return ToolResult(failure=ToolUnavailableError(f"{name} cannot be started: {e}"))
    except subprocess.TimeoutExpired:
        return ToolResult(failure=ToolTimeoutError(f"{name} exceeded {timeout:.0f}s"))
    except OSError as e:
        return ToolResult(failure=ToolUnavailableError(f"{name} failed to start: {e}"))

    stdout = (result.stdout or "").strip()
    if result.returncode != 0:
        stderr = (result.stderr or "").strip()
        return ToolResult(failure=ToolExitError(f"{name} exited with status {result.returncode}: {stderr[:200]}"))
    return ToolResult(output=stdout)


def parse_json_output(text: str) -> List[Any]:
    """
    Parse JSON printed by a tool into a list.

    PowerShell's ConvertTo-Json emits a bare object instead of a one-element
    array when there is a single result, so objects are wrapped.

    Raises:
        MalformedOutputError: if the text is not JSON
    """
    text = text.strip()
    if not text:
        return []
    try:
        raw = json.loads(text)
    except ValueError as e:
        raise MalformedOutputError(f"Invalid JSON from tool: {e}") from e
    if raw is None:
        return []
    return raw if isinstance(raw, list) else [raw]


class AppleScriptExecutor:
    """Centralized AppleScript execution with standardized error handling."""

    def __init__(self, osascript: str = "/usr/bin/osascript"):
        self.osascript = osascript

    def execute(self, script: str, args: Sequence[str] = (), timeout: float = DEFAULT_TIMEOUT) -> ToolResult:
        """
        Execute an AppleScript.

        Args:
            script: AppleScript source
            args: Values handed to the script's ``on run argv`` handler, so
                untrusted data never has to be spliced into the source
            timeout: Seconds before the process is killed

        Returns:
            ToolResult
        """
        return run_tool([self.osascript, "-e", script, *args], timeout=timeout)


class PowerShellExecutor:
    """Runs PowerShell commands non-interactively."""

    def __init__(self, executable: str = "powershell"):
        self.executable = executable

    def execute(self, command: str, args: Sequence[str] = (), timeout: float = DEFAULT_TIMEOUT) -> ToolResult:
        """
        Execute a PowerShell command.

        Args:
            command: Script text for ``-Command``
            args: Extra values available to the script as ``$args``, passed
                as single-quoted literals so they are never evaluated
            timeout: Seconds before the process is killed

        Returns:
            ToolResult
        """
        if args:
            # -Command joins trailing argv into the script text, so bind them explicitly
            literals = " ".join(quote_powershell_literal(a) for a in args)
            command = f"& {{ {command} }} {literals}"
        argv = [self.executable, "-NoProfile", "-NonInteractive", "-Command", command]
        return run_tool(argv, timeout=timeout)


def quote_powershell_literal(value: str) -> str:
    """Quote a value as a PowerShell verbatim string (single quotes doubled)."""
    return "'" + value.replace("'", "''") + "'"
