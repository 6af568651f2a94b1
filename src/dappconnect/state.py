"""
The connection state of a wallet session and the events fired when it changes.
"""
from enum import Enum
from typing import NamedTuple, Optional

from dappconnect.support.mixins import CommonEqualityMixin, StringerMixin


class Unknown:
    """
    The type of UNKNOWN, the marker for a value that has not been determined yet.
    UNKNOWN is distinct from None, which is a determined value meaning "nothing" or "the read failed".
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "UNKNOWN"

    def __reduce__(self):
        return Unknown, ()


UNKNOWN = Unknown()


class ConnectionStatus(Enum):
    DISCONNECTED = "disconnected"
    ACTIVATING = "activating"
    ACTIVE = "active"
    ERRORED = "errored"


class ConnectionState(NamedTuple):
    """
    A snapshot of the session.

    :param status       the ConnectionStatus
    :param descriptor   the ConnectorDescriptor of the selected connector, or None
    :param connector    the connector that owns the session. Set while active, and also while errored after
        the connected wallet switched to an unsupported chain.
    :param provider     the provider handle, set alongside connector
    :param chain_id     the chain id reported by the connector, or None
    :param account      the account address, None when the wallet reports no account, UNKNOWN before activation
    :param error        a ClassifiedError, or None
    """
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    descriptor: object = None
    connector: object = None
    provider: object = None
    chain_id: Optional[int] = None
    account: object = UNKNOWN
    error: object = None

    @property
    def active(self):
        """ a connector and provider are set, and there is no error """
        return self.connector is not None and self.provider is not None and self.error is None

    @property
    def activating(self):
        return self.status is ConnectionStatus.ACTIVATING

    @property
    def errored(self):
        return self.error is not None


INITIAL_STATE = ConnectionState()


class ConnectionStateChangedEvent(CommonEqualityMixin, StringerMixin):
    """ Fired after the state has changed. """

    def __init__(self, previous: ConnectionState, state: ConnectionState):
        self.previous = previous
        self.state = state
