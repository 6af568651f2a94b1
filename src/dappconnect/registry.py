from typing import NamedTuple

from dappconnect.connector.base import Connector
from dappconnect.connector.bridge import BridgeConnector
from dappconnect.connector.injected import InjectedConnector
from dappconnect.connector.network import NetworkConnector
from dappconnect.errors import UnknownConnectorError

INJECTED = "Injected"
NETWORK = "Network"
WALLETCONNECT = "WalletConnect"
WALLETLINK = "WalletLink"


class ConnectorDescriptor(NamedTuple):
    """ A named connector. """
    name: str
    connector: Connector

    def __repr__(self):
        return "ConnectorDescriptor(%r)" % self.name


class ConnectorRegistry:
    """
    The fixed set of connectors available to the application, by name.
    """

    def __init__(self, descriptors=()):
        self._descriptors = {}
        for d in descriptors:
            if d.name in self._descriptors:
                raise ValueError("duplicate connector name: %s" % d.name)
            self._descriptors[d.name] = d

    @classmethod
    def of(cls, **connectors):
        """ builds a registry from name=connector keyword arguments """
        return cls(ConnectorDescriptor(name, connector) for name, connector in connectors.items())

    def lookup(self, name) -> ConnectorDescriptor:
        try:
            return self._descriptors[name]
        except KeyError:
            raise UnknownConnectorError(name) from None

    def names(self):
        return tuple(self._descriptors)

    def __iter__(self):
        return iter(self._descriptors.values())

    def __len__(self):
        return len(self._descriptors)

    def __contains__(self, name):
        return name in self._descriptors


def build_registry(settings, environment, bridge_clients=None) -> ConnectorRegistry:
    """
    Creates the connectors the application offers.

    :param settings     SessionSettings. See dappconnect.config.config.load_settings
    :param environment  mapping holding the injected wallet transport, if any
    :param bridge_clients   mapping from WALLETCONNECT / WALLETLINK to a client factory. Each factory is called
        with the options from the corresponding config section and returns a bridge client.
        Bridge connectors are only registered when a factory is given.
    """
    bridge_clients = bridge_clients or {}
    descriptors = [ConnectorDescriptor(INJECTED, InjectedConnector(environment, settings.polling_interval))]
    if settings.network_urls:
        descriptors.append(ConnectorDescriptor(NETWORK, NetworkConnector(
            settings.network_urls, settings.default_chain_id, settings.polling_interval)))
    bridges = ((WALLETCONNECT, settings.walletconnect), (WALLETLINK, settings.walletlink))
    for name, options in bridges:
        factory = bridge_clients.get(name)
        if factory is not None:
            polling_interval = options.get('polling_interval') or settings.polling_interval
            descriptors.append(ConnectorDescriptor(name, BridgeConnector(
                lambda factory=factory, options=options: factory(options), polling_interval)))
    return ConnectorRegistry(descriptors)
