"""Best-effort concurrent fan-out over independent side effects.

Every branch is started, bounded by a timeout, and joined before
:func:`fan_out` returns.  A failing or stalled branch never cancels its
siblings; its exception is captured in the returned :class:`BranchOutcome`
and logged.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, TypeVar

from ..errors import CollaboratorFailure

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class BranchOutcome:
    label: str
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def bounded(
    awaitable: Awaitable[T],
    timeout: float | None,
    *,
    what: str,
) -> T:
    """Await *awaitable* for at most *timeout* seconds.

    A stall is reported as :class:`CollaboratorFailure` so callers handle it
    like any other collaborator failure.
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except TimeoutError as exc:
        raise CollaboratorFailure(f"{what} timed out after {timeout}s") from exc


async def deferred(fn: Callable[..., Awaitable[T]], *args: Any) -> T:
    """Call *fn* only when awaited, so a synchronous raise fails just this branch."""
    return await fn(*args)


async def fan_out(
    branches: Iterable[tuple[str, Awaitable[Any]]],
    *,
    timeout: float | None = None,
    context: str = "fanout",
) -> list[BranchOutcome]:
    labelled = list(branches)
    if not labelled:
        return []
    results = await asyncio.gather(
        *(bounded(aw, timeout, what=label) for label, aw in labelled),
        return_exceptions=True,
    )
    outcomes: list[BranchOutcome] = []
    for (label, _), res in zip(labelled, results):
        if isinstance(res, BaseException):
            logger.warning("[%s] %s failed: %s", context, label, res, exc_info=res)
            outcomes.append(BranchOutcome(label, res))
        else:
            outcomes.append(BranchOutcome(label))
    return outcomes
