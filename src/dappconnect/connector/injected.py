"""
Connects to a wallet that injects an EIP-1193 transport into the environment, such as a browser extension.
"""
import logging

from dappconnect.connector.base import Activation, Connector, NoProviderError, UserRejectedRequestError
from dappconnect.provider import DEFAULT_POLLING_INTERVAL, Provider
from dappconnect.support.events import Subscription, close_all
from dappconnect.transport import USER_REJECTED_REQUEST, RpcError, parse_quantity

logger = logging.getLogger(__name__)

# the environment key under which a wallet injects its transport
INJECTED_KEY = "ethereum"


def first_account(accounts):
    return accounts[0] if accounts else None


class InjectedConnector(Connector):
    """
    :param environment  a mapping that may hold the injected transport under INJECTED_KEY. It is looked up on
        each use since wallets may inject late.
    :param polling_interval the block polling interval for providers created by this connector
    """

    def __init__(self, environment, polling_interval=DEFAULT_POLLING_INTERVAL):
        super().__init__()
        self.environment = environment
        self.polling_interval = polling_interval
        self._subscriptions = []

    @property
    def transport(self):
        """ the injected transport, or None when no wallet is present """
        return self.environment.get(INJECTED_KEY)

    def _require_transport(self):
        transport = self.transport
        if transport is None:
            raise NoProviderError()
        return transport

    async def activate(self) -> Activation:
        transport = self._require_transport()
        try:
            accounts = await transport.request("eth_requestAccounts")
        except RpcError as e:
            if e.code == USER_REJECTED_REQUEST:
                raise UserRejectedRequestError() from e
            raise
        chain_id = parse_quantity(await transport.request("eth_chainId"))
        self._listen(transport)
        return Activation(Provider(transport, self.polling_interval), chain_id, first_account(accounts))

    def deactivate(self):
        self._subscriptions = close_all(self._subscriptions)

    async def is_authorized(self) -> bool:
        transport = self._require_transport()
        accounts = await transport.request("eth_accounts")
        return len(accounts) > 0

    def _listen(self, transport):
        self._subscriptions = close_all(self._subscriptions)
        self._subscriptions = [
            Subscription.listen(transport, "chainChanged", self._chain_changed),
            Subscription.listen(transport, "accountsChanged", self._accounts_changed),
            Subscription.listen(transport, "disconnect", self._closed),
            Subscription.listen(transport, "close", self._closed),
        ]

    def _chain_changed(self, chain_id):
        logger.debug("chain changed: %s" % chain_id)
        self._update(chain_id=parse_quantity(chain_id))

    def _accounts_changed(self, accounts):
        logger.debug("accounts changed: %s" % (accounts,))
        self._update(account=first_account(accounts))

    def _closed(self, *args):
        logger.info("injected wallet closed the session")
        self._deactivated()
