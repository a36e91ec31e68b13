"""Log request options.

An options value is immutable and validated once when it is created. Values
compose left to right with :meth:`LogRequestOptions.compose`: fields set on a
later value win, fields left unset (``None``) never clear an earlier one.

    opts = LogRequestOptions.compose(since(start), previous())
    assert opts.since == start and opts.previous is True
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import datetime, timezone


@dataclass(frozen=True)
class LogRequestOptions:
    """Options applied to every log stream opened for a request."""

    follow: bool | None = None
    previous: bool | None = None
    since: datetime | None = None
    timestamps: bool | None = None
    tail_lines: int | None = None
    limit_bytes: int | None = None

    def __post_init__(self) -> None:
        if self.since is not None:
            if not isinstance(self.since, datetime):
                raise ValueError(f"since must be a datetime, got {type(self.since).__name__}")
            if self.since.tzinfo is None:
                # Naive timestamps are taken as UTC
                object.__setattr__(self, "since", self.since.replace(tzinfo=timezone.utc))
        if self.tail_lines is not None and self.tail_lines < 0:
            raise ValueError("tail_lines must be >= 0")
        if self.limit_bytes is not None and self.limit_bytes <= 0:
            raise ValueError("limit_bytes must be > 0")

    def merge(self, other: LogRequestOptions | None) -> LogRequestOptions:
        """Return a copy with every field explicitly set on ``other`` applied."""
        if other is None:
            return self
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for f in fields(other):
            value = getattr(other, f.name)
            if value is not None:
                values[f.name] = value
        return LogRequestOptions(**values)

    @classmethod
    def compose(cls, *options: LogRequestOptions | None) -> LogRequestOptions:
        result = cls()
        for opt in options:
            result = result.merge(opt)
        return result


def follow() -> LogRequestOptions:
    """Keep the stream open and emit new lines as they arrive."""
    return LogRequestOptions(follow=True)


def previous() -> LogRequestOptions:
    """Read logs of the previous terminated instance of the container."""
    return LogRequestOptions(previous=True)


def since(timestamp: datetime) -> LogRequestOptions:
    """Only return lines emitted at or after ``timestamp``."""
    return LogRequestOptions(since=timestamp)


def timestamps() -> LogRequestOptions:
    return LogRequestOptions(timestamps=True)


def tail(lines: int) -> LogRequestOptions:
    return LogRequestOptions(tail_lines=lines)
