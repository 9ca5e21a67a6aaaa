"""Error taxonomy shared by queues, servers, and the dispatcher.

Everything a requester may see derives from :class:`UserViewableError`.
Collaborator failures and handler-map collisions are operator-facing only.
"""

from __future__ import annotations


class UserViewableError(Exception):
    """An error whose message is safe to show to the requester."""

    title = "Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def brief(self, topic: str = "") -> str:
        """Reply text; names *topic* when the message does not already."""
        if topic and f"`{topic}`" not in self.message:
            return f"{self.title} in `{topic}`: {self.message}"
        return f"{self.title}: {self.message}"


class CommandParseError(UserViewableError):
    """Malformed or inapplicable request (wrong channel, missing option, ...)."""

    title = "Command Parse Error"


class AuthorizationError(UserViewableError):
    title = "Authorization Error"


class CommandNotImplementedError(UserViewableError):
    title = "Command Not Implemented"


class UnknownOriginError(UserViewableError):
    title = "Unknown Origin"


class ServerError(UserViewableError):
    """A precondition failed at server scope (queue exists, not helping, ...)."""

    title = "Server Error"


class QueueError(UserViewableError):
    """A precondition failed on one queue.  Always names the queue."""

    title = "Queue Error"

    def __init__(self, message: str, queue_name: str) -> None:
        super().__init__(message)
        self.queue_name = queue_name

    def brief(self, topic: str = "") -> str:
        return f"{self.title} in `{self.queue_name}`: {self.message}"


class AlreadyHelpingError(QueueError):
    def __init__(self, queue_name: str) -> None:
        super().__init__("You are already helping this queue.", queue_name)


class QueueClosedError(QueueError):
    def __init__(self, queue_name: str, message: str = "This queue is not open.") -> None:
        super().__init__(message, queue_name)


class NotAHelperError(QueueError):
    def __init__(self, queue_name: str) -> None:
        super().__init__("You are not one of the helpers of this queue.", queue_name)


class AlreadyQueuedError(QueueError):
    def __init__(self, queue_name: str) -> None:
        super().__init__("You are already in the queue.", queue_name)


class IsHelperError(QueueError):
    def __init__(self, queue_name: str) -> None:
        super().__init__("You can't enqueue yourself while helping.", queue_name)


class EmptyQueueError(QueueError):
    def __init__(self, queue_name: str) -> None:
        super().__init__("There's no one in the queue.", queue_name)


class NotInQueueError(QueueError):
    def __init__(self, queue_name: str, display_name: str) -> None:
        super().__init__(f"{display_name} is not in the queue.", queue_name)


class AlreadySubscribedError(QueueError):
    def __init__(self, queue_name: str) -> None:
        super().__init__("You are already in the notification squad.", queue_name)


class NotSubscribedError(QueueError):
    def __init__(self, queue_name: str) -> None:
        super().__init__("You are not in the notification squad.", queue_name)


class CollaboratorFailure(Exception):
    """A renderer, notifier, or log sink call failed or stalled."""


class RenderFailure(CollaboratorFailure):
    """The renderer can no longer update the surface incrementally."""

    def __init__(self, message: str, queue_name: str = "") -> None:
        super().__init__(message)
        self.queue_name = queue_name


class DeliveryFailure(CollaboratorFailure):
    """A direct notification could not be delivered to one recipient."""


class HandlerMapCollisionError(Exception):
    """Two handler-map sources registered the same id for one interaction kind."""

    def __init__(self, kind: str, key: str, sources: list[str]) -> None:
        super().__init__(
            f"Handler id '{key}' for {kind} interactions is registered by "
            f"more than one source: {', '.join(sources)}"
        )
        self.kind = kind
        self.key = key
        self.sources = sources
