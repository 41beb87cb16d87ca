"""Unit tests for the bounded tool runner and its executors."""

import subprocess
from unittest.mock import patch

import pytest

from thread_keeper.exceptions import (
    MalformedOutputError,
    ToolExitError,
    ToolTimeoutError,
    ToolUnavailableError,
)
from thread_keeper.utils import AppleScriptExecutor, PowerShellExecutor, parse_json_output, run_tool
from thread_keeper.utils.tool_runner import escape_applescript_string, quote_powershell_literal


def _completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


class TestRunTool:
    """Failures become typed ToolResult failures, never exceptions."""

    @patch("thread_keeper.utils.tool_runner.subprocess.run")
    def test_success_returns_trimmed_stdout(self, mock_run):
        mock_run.return_value = _completed(stdout="  hello\n")
        result = run_tool(["echo", "hello"], timeout=3)
        assert result.ok
        assert result.output == "hello"
        assert mock_run.call_args.kwargs["timeout"] == 3

    @patch("thread_keeper.utils.tool_runner.subprocess.run")
    def test_missing_binary_is_unavailable(self, mock_run):
        mock_run.side_effect = FileNotFoundError()
        result = run_tool(["osascript", "-e", "x"])
        assert not result.ok
        assert isinstance(result.failure, ToolUnavailableError)

    @patch("thread_keeper.utils.tool_runner.subprocess.run")
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="powershell", timeout=25)
        result = run_tool(["powershell"], timeout=25)
        assert isinstance(result.failure, ToolTimeoutError)

    @patch("thread_keeper.utils.tool_runner.subprocess.run")
    def test_nonzero_exit(self, mock_run):
        mock_run.return_value = _completed(stderr="execution error", returncode=1)
        result = run_tool(["osascript"])
        assert isinstance(result.failure, ToolExitError)
        with pytest.raises(ToolExitError):
            result.raise_for_failure()


class TestParseJsonOutput:

    def test_single_object_is_wrapped(self):
        assert parse_json_output('{"Name": "Code"}') == [{"Name": "Code"}]

    def test_empty_and_null(self):
        assert parse_json_output("") == []
        assert parse_json_output("null") == []

    def test_invalid_json_raises(self):
        with pytest.raises(MalformedOutputError):
            parse_json_output("not json")


class TestExecutors:

    @patch("thread_keeper.utils.tool_runner.run_tool")
    def test_applescript_args_follow_script(self, mock_run_tool):
        AppleScriptExecutor().execute("on run argv\nend run", args=["Notes"], timeout=5)
        argv = mock_run_tool.call_args.args[0]
        assert argv == ["/usr/bin/osascript", "-e", "on run argv\nend run", "Notes"]

    @patch("thread_keeper.utils.tool_runner.run_tool")
    def test_powershell_without_args(self, mock_run_tool):
        PowerShellExecutor().execute("Get-Process", timeout=5)
        argv = mock_run_tool.call_args.args[0]
        assert argv == ["powershell", "-NoProfile", "-NonInteractive", "-Command", "Get-Process"]

    @patch("thread_keeper.utils.tool_runner.run_tool")
    def test_powershell_args_are_bound_as_literals(self, mock_run_tool):
        PowerShellExecutor().execute("$args[0]", args=["NVIDIA Overlay"], timeout=5)
        command = mock_run_tool.call_args.args[0][-1]
        assert command == "& { $args[0] } 'NVIDIA Overlay'"

    def test_quote_powershell_literal_doubles_quotes(self):
        assert quote_powershell_literal("it's") == "'it''s'"

    def test_escape_applescript_string(self):
        assert escape_applescript_string('say "hi"\\') == 'say \\"hi\\"\\\\'
