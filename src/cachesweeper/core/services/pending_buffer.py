"""Request-scoped buffer of pending invalidations.

The active buffer lives in a :class:`contextvars.ContextVar`, so each
thread and each asyncio task sees only the buffer of its own request.
Scopes are opened and closed explicitly with :func:`begin_scope` and
:func:`end_scope`.
"""

from contextvars import ContextVar, Token
from uuid import uuid4

from cachesweeper.core.entities.pending import PendingBatchEntry

REQUEST_TARGET = "request"
JOB_TARGET = "job"
GLOBAL_GROUP = "global"

_current_buffer: ContextVar["PendingBuffer | None"] = ContextVar(
    "cachesweeper_pending_buffer", default=None
)


class PendingBuffer:
    """Accumulates deferred invalidations for one logical request."""

    def __init__(self, scope_id: str | None = None) -> None:
        self.scope_id = scope_id or uuid4().hex[:16]
        self._entries: list[PendingBatchEntry] = []
        # (group, target) -> ordered set of keys
        self._group_keys: dict[tuple[str, str], dict[str, None]] = {}

    def append(self, entry: PendingBatchEntry) -> int:
        """Append an entry and return the new entry count."""
        self._entries.append(entry)
        return len(self._entries)

    @property
    def entries(self) -> tuple[PendingBatchEntry, ...]:
        return tuple(self._entries)

    def drain(self) -> list[PendingBatchEntry]:
        """Return all entries in append order and empty the list."""
        entries, self._entries = self._entries, []
        return entries

    def collect_key(
        self,
        key: str,
        group: str | None = None,
        target: str = REQUEST_TARGET,
    ) -> None:
        """Add a key to a group's request-level or job-level key set."""
        if target not in (REQUEST_TARGET, JOB_TARGET):
            raise ValueError(f"target must be {REQUEST_TARGET!r} or {JOB_TARGET!r}, got {target!r}")
        self._group_keys.setdefault((group or GLOBAL_GROUP, target), {})[key] = None

    def take_group_keys(self, group: str | None = None, target: str = REQUEST_TARGET) -> list[str]:
        """Remove and return a group's collected keys for ``target``."""
        return list(self._group_keys.pop((group or GLOBAL_GROUP, target), {}))

    def collected_groups(self) -> list[str]:
        """Names of groups that have collected keys, in first-seen order."""
        seen: dict[str, None] = {}
        for group, _target in self._group_keys:
            seen[group] = None
        return list(seen)

    def clear(self) -> None:
        self._entries.clear()
        self._group_keys.clear()

    @property
    def is_empty(self) -> bool:
        return not self._entries and not any(self._group_keys.values())

    def __len__(self) -> int:
        return len(self._entries)


def current_buffer() -> PendingBuffer | None:
    """Return the buffer of the active scope, if any."""
    return _current_buffer.get()


def begin_scope(buffer: PendingBuffer | None = None) -> Token["PendingBuffer | None"]:
    """Make ``buffer`` (or a new one) the active buffer.

    Returns:
        A token to pass to :func:`end_scope`.
    """
    return _current_buffer.set(buffer if buffer is not None else PendingBuffer())


def end_scope(token: Token["PendingBuffer | None"]) -> None:
    """Close the scope opened with ``token`` and restore the previous one."""
    _current_buffer.reset(token)
