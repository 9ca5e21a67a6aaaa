"""Optional plugins: queue hooks, server hooks, and extra handler maps."""

from .base import InteractionExtension, QueueExtension, ServerExtension

__all__ = ["InteractionExtension", "QueueExtension", "ServerExtension"]
