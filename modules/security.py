"""
Input hardening shared by the config loader, the engine and storage.

All validators here are pure: they return a cleaned value (or a rejection
marker) and leave logging to the caller, so each caller can report the
field it was validating.
"""
import gc
import logging
import math
import re
from pathlib import Path
from typing import Optional
from urllib.parse import urljoin, urlparse

import psutil

from config.settings import (
    MAX_SELECTOR_LENGTH, MAX_TEXT_LENGTH, MAX_URL_LENGTH,
    MAX_FILENAME_LENGTH, MEMORY_LIMIT_MB, MAX_TIMING_MS
)

logger = logging.getLogger(__name__)

SELECTOR_BLACKLIST = (
    "<script",
    "</script",
    "javascript:",
    "vbscript:",
    "data:",
    "eval(",
    "function(",
    "settimeout(",
    "setinterval(",
    "document.",
    "window.",
    "alert(",
)
EVENT_HANDLER_PATTERN = re.compile(r"\bon[a-z]+\s*=", re.IGNORECASE)

BLOCKED_SCHEMES = ("javascript:", "data:", "file:", "ftp:", "vbscript:")
ALLOWED_SCHEMES = ("http", "https")

SCRIPT_BLOCK = re.compile(r"<script\b[^>]*>.*?</script\s*>", re.IGNORECASE | re.DOTALL)
HTML_TAG = re.compile(r"<[^>]*>")
TEXT_PROTOCOLS = re.compile(r"(javascript|vbscript|data)\s*:", re.IGNORECASE)
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_.]")


def sanitize_file_name(name: str) -> str:
    """Keep only [a-zA-Z0-9-_.] and cap the length."""
    if not isinstance(name, str):
        return ""
    cleaned = UNSAFE_FILENAME_CHARS.sub("", name)
    # A name made only of dots would resolve to the current/parent directory
    if not cleaned.strip("."):
        return ""
    return cleaned[:MAX_FILENAME_LENGTH]


def slugify(text: str) -> str:
    """Create a filesystem-safe slug from text."""
    if not isinstance(text, str):
        return ""
    cleaned = re.sub(r"[^a-zA-Z0-9]+", "-", text.lower()).strip("-")
    return cleaned[:60]


def is_within(path: Path, root: Path) -> bool:
    """True when path resolves to root or somewhere below it."""
    try:
        resolved = Path(path).resolve()
        base = Path(root).resolve()
    except (OSError, RuntimeError):
        return False
    return resolved == base or base in resolved.parents


def has_traversal(path) -> bool:
    """True for paths containing '..' segments or null bytes."""
    text = str(path)
    if "\x00" in text:
        return True
    return ".." in re.split(r"[\\/]", text)


def validate_selector(selector) -> tuple[Optional[str], bool]:
    """
    Validate a CSS-like selector.

    Returns:
        (value, ok). A rejected selector comes back as "" with ok False;
        None passes through untouched.
    """
    if selector is None:
        return None, True
    if not isinstance(selector, str):
        return "", False
    if len(selector) > MAX_SELECTOR_LENGTH:
        return "", False
    lowered = selector.lower()
    if any(pattern in lowered for pattern in SELECTOR_BLACKLIST):
        return "", False
    if EVENT_HANDLER_PATTERN.search(selector):
        return "", False
    return selector, True


def sanitize_text(text) -> str:
    """
    Strip markup, script protocols and control characters from typed text.

    Runs until nothing changes, so sanitizing twice equals sanitizing once.
    """
    if not isinstance(text, str):
        return ""
    current = text
    while True:
        cleaned = SCRIPT_BLOCK.sub("", current)
        cleaned = HTML_TAG.sub("", cleaned)
        cleaned = TEXT_PROTOCOLS.sub("", cleaned)
        cleaned = CONTROL_CHARS.sub("", cleaned)
        cleaned = cleaned[:MAX_TEXT_LENGTH]
        if cleaned == current:
            return cleaned
        current = cleaned


def is_safe_url(url) -> bool:
    """
    Accept same-origin relative paths without traversal, or absolute
    http(s) URLs. Everything else is rejected.
    """
    if not isinstance(url, str) or not url or len(url) > MAX_URL_LENGTH:
        return False
    if CONTROL_CHARS.search(url) or any(ch.isspace() for ch in url):
        return False
    lowered = url.lower()
    if lowered.startswith(BLOCKED_SCHEMES) or "<script" in lowered:
        return False

    if url.startswith("/"):
        if url.startswith("//"):
            return False
        path = urlparse(url).path
        return ".." not in path.split("/")

    parsed = urlparse(url)
    if parsed.scheme not in ALLOWED_SCHEMES or not parsed.netloc:
        return False
    return ".." not in parsed.path.split("/")


def validate_and_sanitize_url(base_url: str, url: str) -> Optional[str]:
    """
    Resolve url against base_url and keep it only when it stays on the
    same scheme and host. Returns None when rejected.
    """
    if not is_safe_url(url):
        return None
    base = urlparse(base_url)
    resolved = urljoin(base_url, url)
    target = urlparse(resolved)
    if (target.scheme, target.netloc) != (base.scheme, base.netloc):
        return None
    return resolved


def is_allowed_base_url(base_url: str, allowed_hosts: list[str]) -> bool:
    """Base URLs must be http(s) and point at an allow-listed host."""
    try:
        parsed = urlparse(base_url)
    except ValueError:
        return False
    if parsed.scheme not in ALLOWED_SCHEMES or not parsed.hostname:
        return False
    return any(
        parsed.hostname == host or parsed.hostname.endswith(f".{host}")
        for host in allowed_hosts
    )


def validate_timing(value, default):
    """Return value if it is a number in [0, MAX_TIMING_MS], else default."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if math.isnan(value) or value < 0 or value > MAX_TIMING_MS:
        return default
    return value


def is_file_size_acceptable(size: int, max_size: int) -> bool:
    return 0 <= size <= max_size


class ResourceMonitor:
    """Watches resident memory and asks the collector to reclaim over a ceiling."""

    def __init__(self, limit_mb: int = MEMORY_LIMIT_MB):
        self.limit_mb = limit_mb
        self._process = psutil.Process()

    def memory_mb(self) -> float:
        return self._process.memory_info().rss / (1024 * 1024)

    def check(self) -> bool:
        """Returns True when the ceiling was exceeded and a collection ran."""
        used = self.memory_mb()
        if used <= self.limit_mb:
            return False
        logger.warning("High memory usage detected: %dMB (limit %dMB)", used, self.limit_mb)
        collected = gc.collect()
        logger.debug("Garbage collection reclaimed %d objects", collected)
        return True
