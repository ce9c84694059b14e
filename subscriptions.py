"""Heuristic detection of subscription-like charges."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Sequence

from schemas import SubscriptionItem, TransactionRecord


DEFAULT_KEYWORDS: tuple[str, ...] = (
    "netflix",
    "spotify",
    "hulu",
    "youtube",
    "prime",
    "icloud",
    "dropbox",
    "adobe",
    "notion",
    "slack",
    "zoom",
)

HIGHLIGHT_COLOR = "#10b981"
DEFAULT_COLOR = "#ef4444"


@dataclass(frozen=True)
class SubscriptionMatch:
    keyword: str
    color: str


class SubscriptionClassifier(Protocol):
    def classify(self, description: str) -> Optional[SubscriptionMatch]: ...


class KeywordSubscriptionClassifier:
    def __init__(
        self,
        keywords: Sequence[str] = DEFAULT_KEYWORDS,
        highlight: str = "spotify",
        highlight_color: str = HIGHLIGHT_COLOR,
        default_color: str = DEFAULT_COLOR,
    ) -> None:
        if not keywords:
            raise ValueError("At least one subscription keyword is required")
        self.keywords = tuple(k.lower() for k in keywords)
        self.highlight = highlight.lower()
        self.highlight_color = highlight_color
        self.default_color = default_color
        self._pattern = re.compile(
            "(" + "|".join(re.escape(k) for k in self.keywords) + ")", re.IGNORECASE
        )

    def classify(self, description: str) -> Optional[SubscriptionMatch]:
        match = self._pattern.search(description or "")
        if not match:
            return None
        keyword = match.group(0).lower()
        color = self.highlight_color if self.highlight in keyword else self.default_color
        return SubscriptionMatch(keyword=keyword, color=color)


def detect_subscriptions(
    transactions: Optional[Iterable[TransactionRecord]],
    classifier: SubscriptionClassifier,
    limit: int = 3,
) -> list[SubscriptionItem]:
    found: list[SubscriptionItem] = []
    for txn in transactions or []:
        if len(found) >= limit:
            break
        if txn.amount >= 0:
            continue
        match = classifier.classify(txn.description)
        if match is None:
            continue
        found.append(
            SubscriptionItem(
                id=txn.id,
                name=txn.description,
                amount=abs(txn.amount),
                status="Active",
                color=match.color,
            )
        )
    return found
