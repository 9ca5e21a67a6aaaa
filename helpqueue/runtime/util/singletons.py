"""Registry of module-level singletons so tests can reset shared state."""

from __future__ import annotations

from collections.abc import Callable

_RESET_HOOKS: list[Callable[[], None]] = []


def register_singleton(reset: Callable[[], None]) -> None:
    """Register *reset* to be called by :func:`reset_all_singletons`."""
    if reset not in _RESET_HOOKS:
        _RESET_HOOKS.append(reset)


def reset_all_singletons() -> None:
    for reset in list(_RESET_HOOKS):
        reset()
