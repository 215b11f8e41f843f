"""Feed payload builders shared across test packages."""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional


def raw_item(**overrides: Any) -> Dict[str, Any]:
    item: Dict[str, Any] = {
        "ticker": "AAPL",
        "company": "Apple Inc.",
        "brokerage": "Goldman Sachs",
        "action": "target raised by",
        "rating_from": "Neutral",
        "rating_to": "Buy",
        "target_from": "$100.00",
        "target_to": "$150.00",
    }
    item.update(overrides)
    return item


def paged_provider(pages: List[List[Any]]) -> Callable[[Optional[str]], Dict[str, Any]]:
    """Serve ``pages`` through the feed's ``next_page`` cursor protocol."""

    def provider(cursor: Optional[str]) -> Dict[str, Any]:
        index = int(cursor) if cursor else 0
        next_page = str(index + 1) if index + 1 < len(pages) else ""
        return {"items": pages[index], "next_page": next_page}

    return provider
