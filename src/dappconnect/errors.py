"""
Classification of connector and provider errors into the kinds an application shows to the user.
"""
import logging
from enum import Enum

from dappconnect.connector.base import NoProviderError, UnsupportedChainIdError, UserRejectedRequestError
from dappconnect.support.mixins import CommonEqualityMixin
from dappconnect.transport import USER_REJECTED_REQUEST, RpcError

logger = logging.getLogger(__name__)


class ErrorKind(Enum):
    NO_PROVIDER = "no_provider"
    UNSUPPORTED_CHAIN = "unsupported_chain"
    USER_REJECTED = "user_rejected"
    UNKNOWN = "unknown"


MESSAGES = {
    ErrorKind.NO_PROVIDER: "No Ethereum browser extension detected, install MetaMask on desktop or visit "
                           "from a dApp browser on mobile.",
    ErrorKind.UNSUPPORTED_CHAIN: "You're connected to an unsupported network.",
    ErrorKind.USER_REJECTED: "Please authorize this website to access your Ethereum account.",
    ErrorKind.UNKNOWN: "An unknown error occurred. Check the console for more details.",
}


class UnknownConnectorError(LookupError):
    """ A connector name was looked up that is not registered. This is a programming error. """

    def __init__(self, name):
        super().__init__("unknown connector: %s" % name)
        self.name = name


class AlreadyActivatingError(Exception):
    """
    Raised to the caller of an activation request that was rejected because an activation of
    another connector is still in flight.
    """

    def __init__(self, in_flight, requested):
        super().__init__("activation of %s is in flight, %s was rejected" % (in_flight, requested))
        self.in_flight = in_flight
        self.requested = requested


def classify(error) -> ErrorKind:
    """
    Determines the kind of a raised error. Every error maps to exactly one kind.
    Errors of unknown kind are logged with their traceback.
    """
    if isinstance(error, NoProviderError):
        return ErrorKind.NO_PROVIDER
    if isinstance(error, UnsupportedChainIdError):
        return ErrorKind.UNSUPPORTED_CHAIN
    if isinstance(error, UserRejectedRequestError):
        return ErrorKind.USER_REJECTED
    if isinstance(error, RpcError) and error.code == USER_REJECTED_REQUEST:
        return ErrorKind.USER_REJECTED
    logger.error("unclassified error: %s" % error, exc_info=error)
    return ErrorKind.UNKNOWN


def error_message(kind: ErrorKind) -> str:
    return MESSAGES[kind]


class ClassifiedError(CommonEqualityMixin):
    """
    An error kind together with the error that was raised.
    The cause is kept for diagnostics only.
    """

    def __init__(self, kind: ErrorKind, cause=None):
        self.kind = kind
        self.cause = cause

    @classmethod
    def of(cls, error):
        return cls(classify(error), error)

    @property
    def message(self):
        return error_message(self.kind)

    def __repr__(self):
        return "ClassifiedError(%s, %r)" % (self.kind.name, self.cause)
