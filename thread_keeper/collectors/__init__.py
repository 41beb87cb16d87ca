"""Collectors for windows, tabs, history, recent files and clipboard."""

from .base import HistorySource, RecentFilesSource, TabScope, TabSource, WindowSource
from .clipboard import read_clipboard, write_clipboard
from .history_collector import ChromiumHistorySource
from .recent_files import get_recent_files_source
from .tab_collector import (
    DebugProtocolTabSource,
    RelayTabSource,
    TabCollector,
    choose_tabs,
    get_fallback_tab_source,
    merge_and_cap,
)
from .window_collector import get_window_source

__all__ = [
    'HistorySource',
    'RecentFilesSource',
    'TabScope',
    'TabSource',
    'WindowSource',
    'read_clipboard',
    'write_clipboard',
    'ChromiumHistorySource',
    'get_recent_files_source',
    'DebugProtocolTabSource',
    'RelayTabSource',
    'TabCollector',
    'choose_tabs',
    'get_fallback_tab_source',
    'merge_and_cap',
    'get_window_source',
]
