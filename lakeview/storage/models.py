"""Listing results shared by all backends."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

# directories carry no modification time
EPOCH_ZERO = datetime.fromtimestamp(0, timezone.utc)


@dataclass(frozen=True)
class File:
    """One entry of a listing, named relative to the queried prefix."""

    filename: str
    last_modified_at: datetime
    is_directory: bool = False


@dataclass(frozen=True)
class Page:
    """Result of a single listing call.

    ``continuation_token`` is None on the last page.
    """

    continuation_token: str | None
    files: list[File] = field(default_factory=list)

    def __post_init__(self):
        if not self.continuation_token:
            object.__setattr__(self, "continuation_token", None)

    @property
    def has_next(self) -> bool:
        return self.continuation_token is not None
