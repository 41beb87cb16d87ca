"""Re-establish a stored session: clipboard, application windows, browser URLs."""

import logging
import re
import webbrowser
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from .exceptions import ToolError, ValidationRejectedError
from .models import FOCUSED, LAUNCHED, RestoreResult, StoredSession, WindowOutcome
from .platform_probe import MACOS, WINDOWS
from .utils import AppleScriptExecutor, PowerShellExecutor
from .utils.urls import is_safe_to_open

logger = logging.getLogger(__name__)

MAX_RESTORE_URLS = 20
LAUNCH_TIMEOUT = 5.0

# Shell and overlay processes that own windows but are not user applications
SKIP_PROCESSES = {
    "textinputhost",
    "applicationframehost",
    "shellexperiencehost",
    "searchhost",
    "lockapp",
    "startmenuexperiencehost",
    "nvidia overlay",
    "nvcontainer",
    "dock",
    "systemuiserver",
    "controlcenter",
    "notificationcenter",
    "windowserver",
}

# Browsers come back through their tab URLs instead
BROWSER_PROCESSES = {
    "msedge",
    "chrome",
    "firefox",
    "brave",
    "opera",
    "iexplore",
    "google chrome",
    "microsoft edge",
    "brave browser",
    "safari",
    "arc",
}

_SAFE_PROCESS_NAME = re.compile(r"[A-Za-z0-9. -]+")

# Names understood by webbrowser.get() for each configurable browser
_WEBBROWSER_NAMES = {
    "edge": "microsoft-edge",
    "chrome": "chrome",
    "firefox": "firefox",
    "brave": "brave",
    "safari": "safari",
}


def validate_process_name(name: str) -> str:
    """
    Check a recorded process name before it reaches any OS command.

    Raises:
        ValidationRejectedError: if the name has anything but letters,
            digits, dot, dash or space
    """
    if not isinstance(name, str) or not _SAFE_PROCESS_NAME.fullmatch(name):
        raise ValidationRejectedError(f"Rejected process name: {name!r}")
    return name


class ProcessLauncher(ABC):
    """Brings an application to the front, launching it when not running."""

    @abstractmethod
    def focus_or_launch(self, process_name: str) -> str:
        """
        Return ``focused`` or ``launched``.

        Raises:
            ToolError: if the OS refused or the call timed out
        """
        pass


_FOCUS_OR_LAUNCH_PS = (
    "$name = $args[0]; "
    "$p = Get-Process -Name $name -ErrorAction SilentlyContinue | "
    "Where-Object { $_.MainWindowHandle -ne 0 } | Select-Object -First 1; "
    "if ($p) { "
    "  Add-Type -Name U32 -Namespace W -MemberDefinition "
    "'[DllImport(\"user32.dll\")] public static extern bool SetForegroundWindow(IntPtr h);'; "
    "  [W.U32]::SetForegroundWindow($p.MainWindowHandle) | Out-Null; "
    "  Write-Output 'focused' "
    "} else { "
    "  Start-Process $name -ErrorAction Stop; "
    "  Write-Output 'launched' "
    "}"
)


class WindowsProcessLauncher(ProcessLauncher):
    """Focus via SetForegroundWindow, otherwise Start-Process."""

    def __init__(self, executor: Optional[PowerShellExecutor] = None, timeout: float = LAUNCH_TIMEOUT):
        self.executor = executor or PowerShellExecutor()
        self.timeout = timeout

    def focus_or_launch(self, process_name: str) -> str:
        result = self.executor.execute(_FOCUS_OR_LAUNCH_PS, args=[process_name], timeout=self.timeout)
        output = result.raise_for_failure()
        return FOCUSED if output.endswith(FOCUSED) else LAUNCHED


_FOCUS_OR_LAUNCH_APPLESCRIPT = '''
on run argv
    set appName to item 1 of argv
    tell application "System Events"
        set isRunning to exists (process appName)
    end tell
    if isRunning then
        tell application "System Events" to set frontmost of process appName to true
        return "focused"
    end if
    tell application appName to activate
    return "launched"
end run
'''


class MacProcessLauncher(ProcessLauncher):
    """Raise a running process through System Events, otherwise activate the app."""

    def __init__(self, executor: Optional[AppleScriptExecutor] = None, timeout: float = LAUNCH_TIMEOUT):
        self.executor = executor or AppleScriptExecutor()
        self.timeout = timeout

    def focus_or_launch(self, process_name: str) -> str:
        result = self.executor.execute(_FOCUS_OR_LAUNCH_APPLESCRIPT, args=[process_name], timeout=self.timeout)
        output = result.raise_for_failure()
        return FOCUSED if output == FOCUSED else LAUNCHED


class NullProcessLauncher(ProcessLauncher):
    """Platforms without an application launcher."""

    def focus_or_launch(self, process_name: str) -> str:
        raise ToolError("Application launching is not supported on this platform")


def get_process_launcher(os_kind: str) -> ProcessLauncher:
    if os_kind == WINDOWS:
        return WindowsProcessLauncher()
    if os_kind == MACOS:
        return MacProcessLauncher()
    return NullProcessLauncher()


class UrlOpener:
    """Opens URLs in the configured browser, or the system default."""

    def __init__(self, preferred_browser: Optional[str] = None):
        self.preferred_browser = preferred_browser

    def _controller(self):
        name = _WEBBROWSER_NAMES.get(self.preferred_browser or "")
        if name:
            try:
                return webbrowser.get(name)
            except webbrowser.Error:
                logger.debug("Browser %s not registered, using system default", name)
        return webbrowser

    def open(self, url: str) -> bool:
        return bool(self._controller().open(url))


def collect_restore_urls(session: StoredSession, limit: int = MAX_RESTORE_URLS) -> List[str]:
    """Unique openable tab URLs, in recorded order, capped at ``limit``."""
    urls = []
    seen = set()
    for tab in session.browser_tabs:
        url = tab.url.strip()
        if url in seen:
            continue
        seen.add(url)
        if is_safe_to_open(url):
            urls.append(url)
    return urls[:limit]


class SessionRestorer:
    """
    Best-effort restoration of a stored session.

    Each step is independent: a failing window or URL is logged and skipped
    without affecting the others.
    """

    def __init__(
        self,
        store,
        launcher: ProcessLauncher,
        url_opener: Optional[UrlOpener] = None,
        clipboard_writer: Optional[Callable[[str], bool]] = None,
    ):
        self.store = store
        self.launcher = launcher
        self.url_opener = url_opener or UrlOpener()
        self.clipboard_writer = clipboard_writer

    def restore(self, session_id: str) -> RestoreResult:
        session = self.store.load(session_id)
        if session is None:
            logger.warning("Cannot restore session %s: not loadable", session_id)
            return RestoreResult(success=False)
        return self.restore_session(session)

    def restore_session(self, session: StoredSession) -> RestoreResult:
        logger.info("Restoring session %s captured at %s", session.id, session.captured_at)
        result = RestoreResult(success=True)
        result.clipboard_restored = self._restore_clipboard(session.clipboard)
        result.window_outcomes = self._restore_windows(session)
        result.urls_opened = self._open_urls(session)
        logger.info(
            "Restore finished: %d windows, %d URLs, clipboard %s",
            len(result.window_outcomes),
            result.urls_opened,
            "restored" if result.clipboard_restored else "untouched",
        )
        return result

    def _restore_clipboard(self, text: str) -> bool:
        if not text or not text.strip() or self.clipboard_writer is None:
            return False
        return bool(self.clipboard_writer(text))

    def _restore_windows(self, session: StoredSession) -> List[WindowOutcome]:
        outcomes = []
        seen = set()
        for window in session.windows:
            name = window.process_name
            key = name.lower()
            if key in SKIP_PROCESSES or key in BROWSER_PROCESSES:
                continue
            try:
                validate_process_name(name)
            except ValidationRejectedError as e:
                logger.warning("%s", e)
                continue
            if key in seen:
                continue
            seen.add(key)
            try:
                outcome = self.launcher.focus_or_launch(name)
            except ToolError as e:
                logger.warning("Could not restore %s: %s", name, e)
                continue
            outcomes.append(WindowOutcome(process_name=name, outcome=outcome))
        return outcomes

    def _open_urls(self, session: StoredSession) -> int:
        opened = 0
        for url in collect_restore_urls(session):
            try:
                if self.url_opener.open(url):
                    opened += 1
            except webbrowser.Error as e:
                logger.warning("Could not open %s: %s", url, e)
        return opened
