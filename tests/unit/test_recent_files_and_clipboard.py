"""Unit tests for recent-file sources and clipboard access."""

import os
from unittest.mock import MagicMock, patch

import pyperclip

from thread_keeper.collectors.base import NullRecentFilesSource
from thread_keeper.collectors.clipboard import read_clipboard, write_clipboard
from thread_keeper.collectors.recent_files import (
    SpotlightRecentFilesSource,
    WindowsRecentFilesSource,
    get_recent_files_source,
)
from thread_keeper.exceptions import ToolTimeoutError
from thread_keeper.platform_probe import PlatformProbe
from thread_keeper.utils import ToolResult


class TestWindowsRecentFiles:

    def test_resolved_targets(self, tmp_path):
        executor = MagicMock()
        executor.execute.return_value = ToolResult(output='["C:\\\\docs\\\\a.docx", "C:\\\\docs\\\\b.xlsx"]')
        source = WindowsRecentFilesSource(tmp_path, executor=executor)
        assert source.collect() == ["C:\\docs\\a.docx", "C:\\docs\\b.xlsx"]
        assert executor.execute.call_args.kwargs["args"] == [str(tmp_path)]

    def test_falls_back_to_shortcut_paths(self, tmp_path):
        older = tmp_path / "old.docx.lnk"
        newer = tmp_path / "new.txt.lnk"
        older.write_bytes(b"")
        newer.write_bytes(b"")
        (tmp_path / "desktop.ini").write_bytes(b"")
        os.utime(older, (1_000_000, 1_000_000))
        os.utime(newer, (2_000_000, 2_000_000))
        executor = MagicMock()
        executor.execute.return_value = ToolResult(failure=ToolTimeoutError("slow"))
        assert WindowsRecentFilesSource(tmp_path, executor=executor).collect() == [str(newer), str(older)]

    def test_missing_folder(self, tmp_path):
        executor = MagicMock()
        assert WindowsRecentFilesSource(tmp_path / "missing", executor=executor).collect() == []
        executor.execute.assert_not_called()


class TestSpotlightRecentFiles:

    @patch("thread_keeper.collectors.recent_files.run_tool")
    def test_existing_files_newest_first(self, mock_run_tool, tmp_path):
        a = tmp_path / "a.md"
        b = tmp_path / "b.md"
        a.write_text("a")
        b.write_text("b")
        os.utime(a, (1_000_000, 1_000_000))
        os.utime(b, (2_000_000, 2_000_000))
        mock_run_tool.return_value = ToolResult(output=f"{a}\n{tmp_path / 'gone.md'}\n{b}\n")
        assert SpotlightRecentFilesSource(tmp_path).collect() == [str(b), str(a)]
        assert mock_run_tool.call_args.args[0][:3] == ["mdfind", "-onlyin", str(tmp_path)]

    def test_selection(self, tmp_path):
        assert isinstance(get_recent_files_source(PlatformProbe("macos", tmp_path)), SpotlightRecentFilesSource)
        assert isinstance(get_recent_files_source(PlatformProbe("linux", tmp_path)), NullRecentFilesSource)


class TestClipboard:

    @patch("thread_keeper.collectors.clipboard.pyperclip.paste")
    def test_read_is_capped(self, mock_paste):
        mock_paste.return_value = "y" * 1000
        assert read_clipboard() == "y" * 500

    @patch("thread_keeper.collectors.clipboard.pyperclip.paste")
    def test_read_failure(self, mock_paste):
        mock_paste.side_effect = pyperclip.PyperclipException("no clipboard mechanism")
        assert read_clipboard() == ""

    @patch("thread_keeper.collectors.clipboard.pyperclip.copy")
    def test_write(self, mock_copy):
        assert write_clipboard("hello") is True
        mock_copy.assert_called_once_with("hello")
        mock_copy.side_effect = pyperclip.PyperclipException("no clipboard mechanism")
        assert write_clipboard("hello") is False
