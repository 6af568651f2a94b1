"""
Activates the injected wallet when it announces itself while the session is inactive, e.g. when the user
unlocks the wallet or switches its network.
"""
import asyncio
import logging

from dappconnect.errors import AlreadyActivatingError
from dappconnect.state import ConnectionStatus
from dappconnect.support.events import Subscription, close_all

logger = logging.getLogger(__name__)

CONNECT = "connect"
CHAIN_CHANGED = "chainChanged"
ACCOUNTS_CHANGED = "accountsChanged"


class InactiveListener:
    """
    Listens to the transport of the injected connector while the machine is disconnected with no activation
    in flight, and activation has not been suppressed. An errored session, such as one the user declined,
    is left alone until it is deactivated. Call update() whenever the suppress flag or the machine's state
    may have changed. The listener also follows the machine's state changes itself.

    :param machine  the ConnectionStateMachine
    :param descriptor   the descriptor of the injected connector. The connector must have a `transport`
        property returning the injected transport, or None.
    """

    def __init__(self, machine, descriptor):
        self.machine = machine
        self.descriptor = descriptor
        self.suppress = True
        self._subscriptions = []
        self._listening_to = None
        self._machine_subscription = machine.events.subscribe(lambda event: self._reevaluate())
        self._tasks = set()

    @property
    def listening(self):
        return bool(self._subscriptions)

    def _idle(self):
        return self.machine.state.status is ConnectionStatus.DISCONNECTED and self.machine.activating is None

    def update(self, suppress):
        self.suppress = suppress
        self._reevaluate()

    def _reevaluate(self):
        transport = None
        if not self.suppress and self._idle():
            transport = self.descriptor.connector.transport
        if transport is self._listening_to and (transport is None or self._subscriptions):
            return
        self._detach()
        if transport is not None:
            logger.debug("listening for %s to connect" % self.descriptor.name)
            self._listening_to = transport
            self._subscriptions = [
                Subscription.listen(transport, CONNECT, self._connected),
                Subscription.listen(transport, CHAIN_CHANGED, self._chain_changed),
                Subscription.listen(transport, ACCOUNTS_CHANGED, self._accounts_changed),
            ]

    def _detach(self):
        if self._subscriptions:
            logger.debug("stopped listening for %s" % self.descriptor.name)
        self._subscriptions = close_all(self._subscriptions)
        self._listening_to = None

    def _connected(self, *args):
        self._activate("connect")

    def _chain_changed(self, chain_id):
        self._activate("chain changed to %s" % chain_id)

    def _accounts_changed(self, accounts):
        if accounts:
            self._activate("accounts changed")

    def _activate(self, reason):
        if self.suppress or not self._idle():
            return
        logger.info("%s: activating %s" % (reason, self.descriptor.name))
        task = asyncio.ensure_future(self._run_activation())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_activation(self):
        # the state may have changed while this was scheduled
        if not self._idle():
            return
        try:
            await self.machine.activate(self.descriptor)
        except AlreadyActivatingError as e:
            logger.info("listener activation not started: %s" % e)

    async def settle(self):
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def close(self):
        self._machine_subscription.close()
        self._detach()
        self.suppress = True
