"""Shared utilities."""

from .durations import format_duration
from .env_file import EnvFile
from .fanout import BranchOutcome, bounded, deferred, fan_out
from .singletons import register_singleton, reset_all_singletons

__all__ = [
    "BranchOutcome",
    "EnvFile",
    "bounded",
    "deferred",
    "fan_out",
    "format_duration",
    "register_singleton",
    "reset_all_singletons",
]
