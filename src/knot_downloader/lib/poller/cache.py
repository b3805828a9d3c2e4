"""In-memory store of HTTP validation tokens (entity tags) per source."""


class ValidatorCache:
    """Per-source slots holding the last-seen validation token.

    A missing slot and a slot holding ``None`` both mean "absent": the next
    fetch for that source is sent without ``If-None-Match``. Nothing is
    persisted, so every process start begins with unconditional fetches.
    Each slot is written only by its own source's loop.
    """

    def __init__(self) -> None:
        self._tokens: dict[str, str | None] = {}

    def get(self, source_id: str) -> str | None:
        """Return the current token for a source, or None if absent."""
        return self._tokens.get(source_id)

    def set(self, source_id: str, token: str | None) -> None:
        """Replace the token for a source. ``None`` marks it absent."""
        self._tokens[source_id] = token

    def clear(self) -> None:
        """Forget every stored token."""
        self._tokens.clear()

    def __contains__(self, source_id: object) -> bool:
        return self._tokens.get(source_id) is not None  # type: ignore[call-overload]

    def __len__(self) -> int:
        return sum(1 for token in self._tokens.values() if token is not None)
