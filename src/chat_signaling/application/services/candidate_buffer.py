"""Queue-or-apply discipline for remote ICE candidates.

A remote candidate is only meaningful once the remote description it belongs
to has been applied. Candidates that arrive earlier are queued and flushed in
arrival order as soon as the description is in place. Candidates arriving
while a flush is in progress join the back of the queue, so no candidate ever
overtakes an earlier one.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from chat_signaling.domain.models import Candidate

logger = logging.getLogger(__name__)


class CandidateBuffer:
    """Buffers candidates until the owning session has a remote description."""

    def __init__(self, label: str) -> None:
        """Initialize an empty, not-yet-ready buffer.

        Args:
            label: Human-readable owner used in log lines (peer or call id).
        """
        self.label = label
        self._pending: deque[Candidate] = deque()
        self._apply: Callable[[Candidate], Awaitable[None]] | None = None
        self._flushing = False
        self._closed = False

    @property
    def ready(self) -> bool:
        """True once candidates are applied directly."""
        return self._apply is not None and not self._flushing and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def add(self, candidate: Candidate) -> None:
        """Apply the candidate now if ready, otherwise queue it."""
        if self._closed:
            logger.debug(f"Dropping candidate for closed session {self.label}")
            return
        apply = self._apply
        if apply is None or self._flushing:
            self._pending.append(candidate)
            logger.debug(f"Queued candidate for {self.label}, queue length: {len(self._pending)}")
            return
        await self._apply_one(apply, candidate)

    def hold(self, candidates: Iterable[Candidate]) -> None:
        """Queue candidates received before this buffer existed, ahead of later arrivals."""
        if self._closed:
            return
        self._pending.extend(candidates)

    async def remote_description_applied(self, apply: Callable[[Candidate], Awaitable[None]]) -> int:
        """Flush queued candidates in FIFO order, then switch to direct application.

        Args:
            apply: Coroutine applying one candidate to the peer connection.

        Returns:
            Number of candidates flushed.
        """
        if self._closed:
            return 0
        self._apply = apply
        if self._flushing:
            return 0
        self._flushing = True
        flushed = 0
        try:
            while self._pending and not self._closed:
                await self._apply_one(apply, self._pending.popleft())
                flushed += 1
        finally:
            self._flushing = False
        if flushed:
            logger.info(f"Flushed {flushed} queued candidate(s) for {self.label}")
        return flushed

    def close(self) -> int:
        """Drop every queued candidate and refuse new ones.

        Returns:
            Number of candidates dropped.
        """
        dropped = len(self._pending)
        self._pending.clear()
        self._closed = True
        self._apply = None
        return dropped

    async def _apply_one(
        self, apply: Callable[[Candidate], Awaitable[None]], candidate: Candidate
    ) -> None:
        try:
            await apply(candidate)
        except Exception as e:
            logger.warning(f"Failed to add ICE candidate for {self.label}: {e}")
