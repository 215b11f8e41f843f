"""Content fingerprint used as the primary key of a stock rating."""

from __future__ import annotations

import hashlib

from ingestion.models.domain import RawRating

FIELD_DELIMITER = "|"


def fingerprint_payload(raw: RawRating) -> str:
    # Field order and the 2-decimal formatting must never change: stored ids depend on them.
    return FIELD_DELIMITER.join(
        (
            raw.ticker,
            raw.company,
            raw.brokerage,
            raw.action,
            raw.rating_from,
            raw.rating_to,
            f"{raw.target_from:.2f}",
            f"{raw.target_to:.2f}",
        )
    )


def derive_rating_id(raw: RawRating) -> str:
    """Return the hex MD5 digest of the rating's identifying fields."""
    data = fingerprint_payload(raw).encode("utf-8")
    return hashlib.md5(data, usedforsecurity=False).hexdigest()
