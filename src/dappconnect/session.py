"""
The facade an application uses: a wallet session combining the registry, the state machine, the eager
connection probe, the inactive listener and the trackers.
"""
import asyncio
import logging
from typing import NamedTuple, Optional

from dappconnect.eager import EagerConnection
from dappconnect.errors import AlreadyActivatingError, ErrorKind
from dappconnect.listener import InactiveListener
from dappconnect.machine import ConnectionStateMachine
from dappconnect.registry import INJECTED, ConnectorRegistry, build_registry
from dappconnect.state import ConnectionStatus
from dappconnect.support.events import EventSource, close_all
from dappconnect.support.mixins import CommonEqualityMixin, StringerMixin
from dappconnect.tracking import BalanceTracker, BlockHeightTracker
from dappconnect.units import describe_balance, describe_value, shorten_account

logger = logging.getLogger(__name__)


class SessionView(NamedTuple):
    """ What the application shows about the session. """
    status: ConnectionStatus
    active: bool
    error: Optional[ErrorKind]
    error_message: Optional[str]
    connector_name: Optional[str]
    chain_id: Optional[int]
    account: object
    block_height: object
    balance: object

    def display(self):
        """ the values as shown to the user, by label """
        return {
            "Chain Id": describe_value(self.chain_id),
            "Block Number": describe_value(self.block_height),
            "Account": shorten_account(self.account),
            "Balance": describe_balance(self.balance),
        }


class SessionChangedEvent(CommonEqualityMixin, StringerMixin):
    def __init__(self, session, view: SessionView):
        self.session = session
        self.view = view


class WalletSession:
    """
    A wallet session.

    Typical use:

        session = WalletSession.from_settings(load_settings(), {"ethereum": wallet_transport})
        session.events += on_change
        await session.start()
        ...
        await session.request_activation("Injected")
        ...
        session.request_deactivation()
        session.close()

    :param registry     the ConnectorRegistry
    :param supported_chain_ids  the chains accepted, None for any chain
    :param injected     the name of the injected connector, used for the eager connection and the inactive
        listener. Neither is used when the registry has no connector by that name.
    """

    def __init__(self, registry: ConnectorRegistry, supported_chain_ids=None, injected=INJECTED):
        self.registry = registry
        self.machine = ConnectionStateMachine(supported_chain_ids)
        self.block_height = BlockHeightTracker(self.machine)
        self.balance = BalanceTracker(self.machine)
        self.events = EventSource()
        self.activating = None      # the descriptor of the activation requested by the user, while in flight
        self.eager = None
        self.listener = None
        if injected in registry:
            descriptor = registry.lookup(injected)
            self.eager = EagerConnection(self.machine, descriptor)
            self.listener = InactiveListener(self.machine, descriptor)
        self._view = self.view()
        self._subscriptions = [
            self.machine.events.subscribe(self._changed),
            self.block_height.events.subscribe(self._changed),
            self.balance.events.subscribe(self._changed),
        ]
        for descriptor in registry:
            s = descriptor.connector.on_session_uri(self._session_uri)
            if s is not None:
                self._subscriptions.append(s)

    @classmethod
    def from_settings(cls, settings, environment, bridge_clients=None):
        """ creates a session with the connectors described by the settings. See registry.build_registry """
        return cls(build_registry(settings, environment, bridge_clients), settings.supported_chain_ids)

    @property
    def suppressed(self):
        """ the inactive listener is suppressed until the eager connection has been tried, and during
        user requested activations """
        return (self.eager is not None and not self.eager.tried) or self.activating is not None

    async def start(self):
        """ runs the eager connection, then starts the inactive listener """
        if self.eager is not None:
            await self.eager.run()
        self._update_listener()

    async def request_activation(self, name) -> bool:
        """
        Activates the named connector.
        :return: True when the session is active on that connector. False when the activation failed,
            with the error in the view, or when it was rejected because another activation is in flight.
        Raises UnknownConnectorError when there is no connector with the name.
        """
        descriptor = self.registry.lookup(name)
        owner = self.activating is None
        if owner:
            self.activating = descriptor
            self._update_listener()
        try:
            state = await self.machine.activate(descriptor)
        except AlreadyActivatingError as e:
            logger.info("activation request ignored: %s" % e)
            return False
        finally:
            if owner:
                self.activating = None
                self._update_listener()
        return state.active and state.descriptor == descriptor

    def request_deactivation(self):
        self.machine.deactivate()

    def view(self) -> SessionView:
        state = self.machine.state
        error = state.error
        return SessionView(
            status=state.status,
            active=state.active,
            error=error.kind if error is not None else None,
            error_message=error.message if error is not None else None,
            connector_name=state.descriptor.name if state.descriptor is not None else None,
            chain_id=state.chain_id,
            account=state.account,
            block_height=self.block_height.value,
            balance=self.balance.value)

    async def settle(self):
        """ waits for background reads and activations to complete """
        if self.listener is not None:
            await self.listener.settle()
        await asyncio.gather(self.block_height.settle(), self.balance.settle())

    def close(self):
        """ ends the session and detaches from all event sources """
        self._subscriptions = close_all(self._subscriptions)
        if self.listener is not None:
            self.listener.close()
        self.machine.deactivate()
        self.block_height.dispose()
        self.balance.dispose()

    def _update_listener(self):
        if self.listener is not None:
            self.listener.update(self.suppressed)

    def _changed(self, event=None):
        view = self.view()
        if view != self._view:
            self._view = view
            self.events.fire(SessionChangedEvent(self, view))

    def _session_uri(self, uri):
        logger.info("WalletConnect URI %s" % uri)
