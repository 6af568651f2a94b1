import logging

from dappconnect.connector.base import Activation, Connector, ConnectorError
from dappconnect.provider import DEFAULT_POLLING_INTERVAL, Provider
from dappconnect.transport import HttpTransport

logger = logging.getLogger(__name__)


class NetworkConnector(Connector):
    """
    Read-only connection to a remote JSON-RPC endpoint. There is never an account.

    :param urls     mapping from chain id to the RPC url for that chain
    :param default_chain_id the chain used on activation. Defaults to the first chain in urls.
    :param transport_factory    callable taking a url and returning a transport
    """

    def __init__(self, urls, default_chain_id=None, polling_interval=DEFAULT_POLLING_INTERVAL,
                 transport_factory=HttpTransport):
        super().__init__()
        if not urls:
            raise ValueError("at least one RPC url is required")
        self.urls = {int(k): v for k, v in urls.items()}
        self.chain_id = int(default_chain_id) if default_chain_id is not None else next(iter(self.urls))
        if self.chain_id not in self.urls:
            raise ValueError("no RPC url for default chain %s" % self.chain_id)
        self.polling_interval = polling_interval
        self._transport_factory = transport_factory
        self._active = False

    def _provider(self):
        return Provider(self._transport_factory(self.urls[self.chain_id]), self.polling_interval)

    async def activate(self) -> Activation:
        self._active = True
        return Activation(self._provider(), self.chain_id, None)

    def deactivate(self):
        self._active = False

    def change_chain_id(self, chain_id):
        """
        Switches to the url for another chain. While active, an update with a provider for the
        new url is fired.
        """
        chain_id = int(chain_id)
        if chain_id not in self.urls:
            raise ConnectorError("no RPC url for chain %s" % chain_id)
        self.chain_id = chain_id
        logger.info("network connector switched to chain %s" % chain_id)
        if self._active:
            self._update(chain_id=chain_id, provider=self._provider())
