"""helpqueue runtime -- queues, servers, and the interaction dispatcher."""

__version__ = "0.4.0"
