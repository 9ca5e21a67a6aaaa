"""Merge the built-in handler maps with those contributed by extensions."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from types import MappingProxyType

from ..errors import HandlerMapCollisionError
from ..extensions.base import InteractionExtension
from .routes import CommandRoute, CompleteHandlerMaps, HandlerMap, InteractionKind

logger = logging.getLogger(__name__)

BASE_SOURCE = "builtin"


def combine_handler_maps(
    base_maps: Mapping[InteractionKind, HandlerMap],
    extensions: Sequence[InteractionExtension] = (),
) -> CompleteHandlerMaps:
    """Union every source's routes and skip sets, one table per kind.

    Raises :class:`HandlerMapCollisionError` when an id is registered by more
    than one source for the same kind.  The result does not depend on the
    order of *extensions*.
    """
    sources: list[tuple[str, Mapping[InteractionKind, HandlerMap]]] = [(BASE_SOURCE, base_maps)]
    sources += [(ext.name, ext.handler_maps()) for ext in extensions]

    combined: dict[InteractionKind, HandlerMap] = {}
    for kind in InteractionKind:
        routes: dict[str, CommandRoute] = {}
        owners: dict[str, list[str]] = {}
        skip: set[str] = set()
        for source, maps in sources:
            handler_map = maps.get(kind)
            if handler_map is None:
                continue
            for key, route in handler_map.routes.items():
                owners.setdefault(key, []).append(source)
                routes[key] = route
            skip |= handler_map.skip_progress_message

        for key, names in sorted(owners.items()):
            if len(names) > 1:
                raise HandlerMapCollisionError(kind.value, key, sorted(names))

        combined[kind] = HandlerMap(
            kind,
            MappingProxyType(dict(sorted(routes.items()))),
            frozenset(skip),
        )
        logger.debug("[composer] %s: %d route(s)", kind.value, len(routes))

    return CompleteHandlerMaps(MappingProxyType(combined))
