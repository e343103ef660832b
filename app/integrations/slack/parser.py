"""
Slack Permalink and Timestamp Parser

Parses Slack message permalinks to extract channel_id and thread_ts, and
validates raw message timestamps.
"""

import re
from dataclasses import dataclass
from typing import Optional

from app.services.errors import ValidationError

TS_PATTERN = re.compile(r"^\d{10}\.\d{6}$")
PERMALINK_PATTERN = re.compile(
    r"https://([^.]+)\.slack\.com/archives/([A-Z0-9]+)/p(\d{16})"
)


@dataclass
class ParsedPermalink:
    """Parsed Slack permalink components."""

    workspace: str
    channel_id: str
    thread_ts: str


def parse_permalink(permalink: str) -> ParsedPermalink:
    """
    Parse Slack message permalink to extract channel and timestamp.

    Examples:
        https://myworkspace.slack.com/archives/C123ABC456/p1234567890123456
        -> channel_id: C123ABC456
        -> thread_ts: 1234567890.123456

    Raises:
        ValidationError: If permalink format is invalid
    """
    match = PERMALINK_PATTERN.match(permalink)
    if not match:
        raise ValidationError(f"Invalid Slack permalink format: {permalink}")

    workspace, channel_id, ts_raw = match.groups()

    # Slack uses 10 digits before decimal, 6 after
    thread_ts = f"{ts_raw[:10]}.{ts_raw[10:]}"

    return ParsedPermalink(
        workspace=workspace,
        channel_id=channel_id,
        thread_ts=thread_ts,
    )


def resolve_thread_reference(
    reference: str, channel_id: Optional[str] = None
) -> ParsedPermalink:
    """
    Accept either a raw message timestamp or a permalink.

    A permalink carries its own channel and takes precedence over
    ``channel_id``; a raw timestamp needs ``channel_id`` from the caller.
    """
    reference = (reference or "").strip()
    if reference.startswith("https://"):
        return parse_permalink(reference)

    if not TS_PATTERN.match(reference):
        raise ValidationError(f"Invalid Slack message timestamp: {reference!r}")
    if not channel_id:
        raise ValidationError("channel_id is required when a raw timestamp is given")

    return ParsedPermalink(workspace="", channel_id=channel_id, thread_ts=reference)


def looks_like_user_id(target: str) -> bool:
    """Slack user ids start with U (or W for enterprise grid users)."""
    return bool(re.match(r"^[UW][A-Z0-9]{2,}$", target))
