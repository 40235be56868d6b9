class GroupOrderError(Exception):
    """Base class for every error raised by the group order bot"""


class TransportError(GroupOrderError):
    """Sending, editing or reacting to a chat message failed"""


class ExternalAPIError(GroupOrderError):
    """The Wolt API could not be reached or answered with garbage"""


class JoinError(ExternalAPIError):
    """Joining the Wolt group failed"""


class NotFoundError(GroupOrderError):
    """A user, order or debt lookup came back empty"""


class WaitTimeoutError(GroupOrderError, TimeoutError):
    """A bounded wait expired"""


class OrderCanceledError(GroupOrderError):
    """The Wolt group order was canceled by its host"""


class AuthorizationError(GroupOrderError):
    """Someone tried to do something they are not allowed to"""


class TooManyRequestsError(GroupOrderError):
    """The ingress queue is full"""
