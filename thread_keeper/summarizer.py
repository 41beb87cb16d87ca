"""Session summaries from an OpenAI-compatible chat endpoint."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

import openai

from .config import LLM_API_KEY, LLM_ENDPOINT, LLM_MODEL
from .exceptions import SummaryError
from .models import SessionSnapshot
from .restorer import BROWSER_PROCESSES
from .utils.urls import extract_domain

logger = logging.getLogger(__name__)

PLACEHOLDER_SUMMARY = "Could not infer what you were working on."

MAX_PROMPT_TABS = 15
MAX_PROMPT_HISTORY = 20
MAX_PROMPT_FILES = 5
CLIPBOARD_PREVIEW_CHARS = 200


def _describe_page(url: str, title: str) -> str:
    domain = extract_domain(url) or url
    if title and title != url and len(title) > 3:
        return f"- [{domain}] {title}"
    return f"- {url}"


def _relative_age(visited_at: datetime, now: datetime) -> str:
    minutes = round((now - visited_at).total_seconds() / 60)
    if minutes < 60:
        return f"{minutes} min ago"
    return f"{round(minutes / 60)} h ago"


def build_prompt(snapshot: SessionSnapshot, now: Optional[datetime] = None) -> str:
    """
    Render a snapshot into the summary prompt.

    Args:
        snapshot: Captured context
        now: Reference instant for history ages (defaults to current UTC time)

    Returns:
        Prompt text
    """
    now = now or datetime.now(timezone.utc)

    window_lines = [
        f"- {w.title} ({w.process_name})"
        for w in snapshot.windows
        if w.process_name.lower().replace(".exe", "") not in BROWSER_PROCESSES
    ]
    tab_lines = [_describe_page(t.url, t.title) for t in snapshot.browser_tabs[:MAX_PROMPT_TABS]]
    history_lines = [
        f"{_describe_page(h.url, h.title)} ({_relative_age(h.visited_at, now)})"
        for h in snapshot.browser_history[:MAX_PROMPT_HISTORY]
    ]
    files = ", ".join(snapshot.recent_files[:MAX_PROMPT_FILES])
    clipboard = snapshot.clipboard[:CLIPBOARD_PREVIEW_CHARS]

    def section(title: str, lines: List[str]) -> str:
        return f"## {title}\n" + ("\n".join(lines) if lines else "none")

    parts = [
        "You record work context. From the snapshot of this computer below, infer what the user "
        "was working on and answer ONLY in the format given at the end.",
        section("Recent browser history (title and age)", history_lines),
        section("Open browser tabs", tab_lines),
        section("Open applications", window_lines),
        section("Recently used files", [files] if files else []),
        section("Clipboard (first 200 characters)", [clipboard] if clipboard else []),
        "## Output format (output nothing else)\n"
        "Task: [one sentence, verb and object, e.g. Configuring a Vercel deployment and verifying it]\n"
        "References: [top 3-5 services or tabs separated by slashes, e.g. GitHub / Vercel / Google Search]\n"
        "Remaining work: [one sentence if something is unfinished; omit this line otherwise]",
        "Rules:\n"
        "- No preamble, explanation or follow-up questions\n"
        "- Prefer concrete names: page titles, video names, service names\n"
        "- Weigh the flow of the browsing history most heavily\n"
        "- If there are several activities, put the main one under Task and list the rest under References",
    ]
    return "\n\n".join(parts)


class SessionSummarizer:
    """Generates a short natural-language summary of a snapshot."""

    def __init__(self, endpoint: Optional[str] = None, model: Optional[str] = None,
                 api_key: Optional[str] = None, client=None):
        self.endpoint = endpoint or LLM_ENDPOINT
        self.model = model or LLM_MODEL
        self.client = client or openai.OpenAI(
            base_url=self.endpoint,
            api_key=api_key or LLM_API_KEY,
        )

    def request_summary(self, snapshot: SessionSnapshot) -> str:
        """
        Ask the model for a summary.

        Raises:
            SummaryError: if the endpoint fails or returns nothing
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": build_prompt(snapshot)}],
                max_tokens=400,
                temperature=0.7,
            )
        except openai.OpenAIError as e:
            raise SummaryError(f"Summary request failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise SummaryError("Summary endpoint returned no text")
        return content.strip()

    def summarize(self, snapshot: SessionSnapshot) -> str:
        """Summary text, or a placeholder when the endpoint is unavailable."""
        try:
            return self.request_summary(snapshot)
        except SummaryError as e:
            logger.warning("%s", e)
            return PLACEHOLDER_SUMMARY
