"""Queue records and backup shapes.

:class:`~.help_queue.HelpQueue` is imported from its module directly.
"""

from .backup import QueueBackup, ServerBackup, StudentBackup
from .members import Helpee, Helper, Member, utcnow
from .view import QueueChannel, QueueViewModel

__all__ = [
    "Helpee",
    "Helper",
    "Member",
    "QueueBackup",
    "QueueChannel",
    "QueueViewModel",
    "ServerBackup",
    "StudentBackup",
    "utcnow",
]
