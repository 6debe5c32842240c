"""Heuristic spam screening for recipe comments.

Checks run in a fixed order and the first failure decides the reason:
links, repeated characters, shouting, then spam vocabulary.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

MAX_LINKS = 3
MAX_REPEATED_CHARS = 10
MIN_LENGTH_FOR_CAPS_CHECK = 20
MAX_SPAM_WORDS = 2

SPAM_WORDS: tuple[str, ...] = (
    "viagra",
    "cialis",
    "casino",
    "lottery",
    "prize",
    "winner",
    "free money",
    "make money fast",
    "earn money online",
    "work from home",
    "buy now",
    "click here",
    "limited time",
    "act now",
    "best price",
    "discount",
    "cheap",
    ".ru",
    ".cn",
    "bit.ly",
    "goo.gl",
    "nigerian prince",
    "inheritance",
    "bank transfer",
    "western union",
    "wire transfer",
    "guaranteed",
    "satisfaction guaranteed",
    "risk free",
    "no risk",
    "100% free",
    "💰",
    "💵",
    "💸",
    "🤑",
    "🎰",
)

_LINK_RE = re.compile(r"https?://\S+", re.IGNORECASE)
_REPEAT_RE = re.compile(r"(.)\1{%d,}" % (MAX_REPEATED_CHARS - 1))


@dataclass
class SpamCheckResult:
    is_spam: bool
    reason: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


def _spam_word_hits(content: str) -> list[str]:
    words = content.lower().split()
    return [w for w in words if any(term in w for term in SPAM_WORDS)]


def check_spam(content: str) -> SpamCheckResult:
    text = content or ""
    details: dict[str, Any] = {
        "spam_words_found": [],
        "link_count": 0,
        "has_repeated_chars": False,
        "is_all_caps": False,
    }

    details["link_count"] = len(_LINK_RE.findall(text))
    if details["link_count"] > MAX_LINKS:
        return SpamCheckResult(
            True, f"Too many links ({details['link_count']} found, max {MAX_LINKS} allowed)", details
        )

    details["has_repeated_chars"] = bool(_REPEAT_RE.search(text))
    if details["has_repeated_chars"]:
        return SpamCheckResult(
            True, f"Contains excessive repeated characters ({MAX_REPEATED_CHARS}+ in a row)", details
        )

    # Text without letters (digits, emoji) is never "shouting"
    if len(text) > MIN_LENGTH_FOR_CAPS_CHECK and any(ch.isalpha() for ch in text):
        details["is_all_caps"] = text == text.upper()
        if details["is_all_caps"]:
            return SpamCheckResult(True, "Message is all uppercase (shouting)", details)

    details["spam_words_found"] = _spam_word_hits(text)
    if len(details["spam_words_found"]) > MAX_SPAM_WORDS:
        return SpamCheckResult(
            True, f"Contains too many spam words ({', '.join(details['spam_words_found'])})", details
        )

    return SpamCheckResult(False, None, details)


__all__ = ["SpamCheckResult", "check_spam", "SPAM_WORDS"]
