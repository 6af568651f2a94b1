"""
Connectors for bridge protocols such as WalletConnect and WalletLink, where the wallet lives on another
device and the session is paired by a URI (usually shown as a QR code).

The bridge protocol itself is implemented by a client object created by a factory supplied by the
application. The client is expected to be an EIP-1193 transport (request/on/remove_listener) with
two more methods:

- enable() - a coroutine that pairs with the wallet and returns the authorized accounts
- disconnect() - ends the session

The client emits "display_uri" with the pairing URI once it is known.
"""
import logging

from dappconnect.connector.base import Activation, Connector, UserRejectedRequestError
from dappconnect.connector.injected import first_account
from dappconnect.provider import DEFAULT_POLLING_INTERVAL, Provider
from dappconnect.support.events import EventSource, Subscription, close_all
from dappconnect.transport import USER_REJECTED_REQUEST, RpcError, parse_quantity

logger = logging.getLogger(__name__)

# the message bridge clients use when the user dismisses the pairing dialog
USER_CLOSED_MODAL = "User closed modal"


def is_rejection(error):
    if isinstance(error, RpcError) and error.code == USER_REJECTED_REQUEST:
        return True
    return str(error) == USER_CLOSED_MODAL


class BridgeConnector(Connector):
    """
    :param client_factory   callable returning a new bridge client for each session
    :param polling_interval the block polling interval for providers created by this connector
    """

    def __init__(self, client_factory, polling_interval=DEFAULT_POLLING_INTERVAL):
        super().__init__()
        self.client_factory = client_factory
        self.polling_interval = polling_interval
        self.session_uris = EventSource()
        self.client = None
        self._subscriptions = []

    def on_session_uri(self, callback):
        return self.session_uris.subscribe(callback)

    async def activate(self) -> Activation:
        if self.client is None:
            self.client = self.client_factory()
            self._listen(self.client)
        client = self.client
        try:
            accounts = await client.enable()
        except Exception as e:
            if is_rejection(e):
                self.deactivate()
                raise UserRejectedRequestError() from e
            raise
        chain_id = parse_quantity(await client.request("eth_chainId"))
        return Activation(Provider(client, self.polling_interval), chain_id, first_account(accounts))

    def deactivate(self):
        self._subscriptions = close_all(self._subscriptions)
        client = self.client
        self.client = None
        if client is not None:
            client.disconnect()

    def _listen(self, client):
        self._subscriptions = [
            Subscription.listen(client, "display_uri", self._display_uri),
            Subscription.listen(client, "chainChanged", self._chain_changed),
            Subscription.listen(client, "accountsChanged", self._accounts_changed),
            Subscription.listen(client, "disconnect", self._closed),
        ]

    def _display_uri(self, uri):
        self.session_uris.fire(uri)

    def _chain_changed(self, chain_id):
        self._update(chain_id=parse_quantity(chain_id))

    def _accounts_changed(self, accounts):
        self._update(account=first_account(accounts))

    def _closed(self, *args):
        logger.info("bridge session closed by the wallet")
        self._deactivated()
