"""UK postcode normalisation."""

from __future__ import annotations

import re

_WHITESPACE_RE = re.compile(r"\s+")


def normalise_postcode(raw: str | None) -> str:
    """Return the lookup key for ``raw``: uppercase with all whitespace removed.

    The same key is used when the coverage store is built and when it is
    queried, so ``"sw1a 1aa"`` and ``"SW1A1AA"`` hit the same row. Applying it
    twice changes nothing.
    """
    if raw is None:
        return ""
    return _WHITESPACE_RE.sub("", raw).upper()
