from abc import abstractmethod
from typing import NamedTuple, Optional

from dappconnect.support.events import EventSource
from dappconnect.support.mixins import CommonEqualityMixin, StringerMixin


class ConnectorError(Exception):
    """ Indicates an error condition with a connector. """


class NoProviderError(ConnectorError):
    """ There is no wallet provider in the environment (e.g. no browser extension installed.) """

    def __init__(self, message="No Ethereum provider was found in the environment."):
        super().__init__(message)


class UserRejectedRequestError(ConnectorError):
    """ The user declined the authorization request. """

    def __init__(self, message="The user rejected the request."):
        super().__init__(message)


class UnsupportedChainIdError(ConnectorError):
    """ The connected chain is not one of the chains supported by the application. """

    def __init__(self, chain_id, supported_chain_ids=()):
        super().__init__("Unsupported chain id: %s, supported: %s" % (chain_id, list(supported_chain_ids)))
        self.chain_id = chain_id
        self.supported_chain_ids = tuple(supported_chain_ids)


class Activation(NamedTuple):
    """ The result of a successful activation. """
    provider: object
    chain_id: int
    account: Optional[str] = None


class ConnectorEvent(CommonEqualityMixin, StringerMixin):
    """ base class for connector events. """
    def __init__(self, connector):
        self.connector = connector


class ConnectorUpdateEvent(ConnectorEvent):
    """
    The chain, provider or account of an active connector changed. chain_id and provider are None when
    they did not change.
    account is only meaningful when account_changed is set, since None is a valid account value
    (the wallet reports no authorized account.)
    """
    def __init__(self, connector, chain_id=None, account=None, account_changed=False, provider=None):
        super().__init__(connector)
        self.chain_id = chain_id
        self.provider = provider
        self.account = account
        self.account_changed = account_changed


class ConnectorDeactivateEvent(ConnectorEvent):
    """ The connector's session ended from the provider side. """


class ConnectorErrorEvent(ConnectorEvent):
    """ The connector's session failed. """
    def __init__(self, connector, error):
        super().__init__(connector)
        self.error = error


class Connector:
    """
    A capability that can establish a session with a wallet or node.
    Connectors do not hold application state - the state machine decides what is active.
    While a session is active, the connector fires ConnectorEvent instances from `events`.
    """

    def __init__(self):
        self.events = EventSource()

    @abstractmethod
    async def activate(self) -> Activation:
        """
        Establishes a session.
        Raises NoProviderError, UserRejectedRequestError or other errors when the session cannot be
        established.
        """
        raise NotImplementedError

    @abstractmethod
    def deactivate(self):
        """ Ends the session and detaches from the underlying transport. Calling this when inactive has no effect. """
        raise NotImplementedError

    async def is_authorized(self) -> bool:
        """ Determines if the application was previously authorized, so activation can proceed without a prompt. """
        return False

    def on_session_uri(self, callback):
        """
        Registers a callback for the session URI (e.g. a pairing QR code) of bridge connectors.
        :return: a Subscription to remove the callback, or None when this connector has no session URIs.
        """
        return None

    def _update(self, chain_id=None, provider=None, **kwargs):
        """ fires an update event. Pass account=... to report an account change, including None. """
        account_changed = 'account' in kwargs
        self.events.fire(ConnectorUpdateEvent(self, chain_id=chain_id, account=kwargs.get('account'),
                                              account_changed=account_changed, provider=provider))

    def _deactivated(self):
        self.events.fire(ConnectorDeactivateEvent(self))

    def _error(self, error):
        self.events.fire(ConnectorErrorEvent(self, error))
