"""
The connection state machine. Owns the ConnectionState, the active connector's event subscription and the
provider's block subscription.

Transitions:

    DISCONNECTED -> ACTIVATING -> ACTIVE | ERRORED
    ACTIVE <-> ERRORED  (the wallet switched to an unsupported chain and back)
    any -> DISCONNECTED (deactivate)

Only one activation is in flight at a time. Races with deactivation are resolved by a session token: each
deactivation starts a new session, and an activation that completes under an older session is discarded.
"""
import asyncio
import logging

from dappconnect.connector.base import ConnectorDeactivateEvent, ConnectorErrorEvent, ConnectorUpdateEvent, \
    UnsupportedChainIdError
from dappconnect.errors import AlreadyActivatingError, ClassifiedError, ErrorKind
from dappconnect.provider import BLOCK
from dappconnect.state import INITIAL_STATE, ConnectionState, ConnectionStateChangedEvent, ConnectionStatus
from dappconnect.support.events import EventSource, Subscription

logger = logging.getLogger(__name__)


class ConnectionStateMachine:
    """
    Fires ConnectionStateChangedEvent from `events` whenever the state changes, and the block number from
    `blocks` for each new block of the active provider.

    :param supported_chain_ids  the chain ids the application accepts. None accepts any chain.
    """

    def __init__(self, supported_chain_ids=None):
        self.supported_chain_ids = tuple(supported_chain_ids) if supported_chain_ids is not None else None
        self.events = EventSource()
        self.blocks = EventSource()
        self._state = INITIAL_STATE
        self._session = 0
        self._activating = None         # (descriptor, future) of the activation in flight
        self._connector_subscription = None
        self._block_subscription = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def active(self):
        return self._state.active

    @property
    def activating(self):
        """ the descriptor of the activation in flight, or None """
        return self._activating[0] if self._activating is not None else None

    def is_supported(self, chain_id):
        return self.supported_chain_ids is None or chain_id in self.supported_chain_ids

    async def activate(self, descriptor) -> ConnectionState:
        """
        Activates the connector of the given descriptor and returns the resulting state.
        Activation failures are recorded in the state and not raised.

        Raises AlreadyActivatingError when an activation of another connector is in flight. A request for the
        connector already being activated waits for that activation instead of starting another.
        """
        if self._activating is not None:
            in_flight, done = self._activating
            if in_flight != descriptor:
                raise AlreadyActivatingError(in_flight.name, descriptor.name)
            return await asyncio.shield(done)

        state = self._state
        if state.active and state.descriptor == descriptor:
            return state
        if state.connector is not None:
            self.deactivate()

        session = self._session
        done = asyncio.get_running_loop().create_future()
        self._activating = (descriptor, done)
        self._transition(ConnectionState(ConnectionStatus.ACTIVATING, descriptor))
        logger.debug("activating %s" % descriptor.name)
        result = None
        try:
            try:
                activation = await descriptor.connector.activate()
                if not self.is_supported(activation.chain_id):
                    raise UnsupportedChainIdError(activation.chain_id, self.supported_chain_ids)
            except asyncio.CancelledError:
                self._cancelled(descriptor, session)
                raise
            except Exception as e:
                result = self._failed(descriptor, session, e)
            else:
                result = self._activated(descriptor, session, activation)
            return result
        finally:
            if self._activating is not None and self._activating[1] is done:
                self._activating = None
            if result is not None:
                done.set_result(result)
            else:
                done.cancel()

    def deactivate(self):
        """
        Ends the session. The block and connector subscriptions are closed before the provider is released.
        An activation in flight is abandoned and its result will be discarded.
        Calling this when disconnected has no effect.
        """
        self._session += 1
        self._activating = None
        self._close_subscriptions()
        connector = self._state.connector
        if connector is not None:
            connector.deactivate()
        if self._transition(INITIAL_STATE) is not None:
            logger.info("session deactivated")

    def _activated(self, descriptor, session, activation):
        if session != self._session:
            logger.debug("discarding stale activation of %s" % descriptor.name)
            self._release(descriptor)
            return self._state
        connector = descriptor.connector
        self._connector_subscription = connector.events.subscribe(self._connector_event)
        self._watch_blocks(activation.provider)
        logger.info("%s activated on chain %s" % (descriptor.name, activation.chain_id))
        return self._set(ConnectionState(ConnectionStatus.ACTIVE, descriptor, connector, activation.provider,
                                         activation.chain_id, activation.account))

    def _failed(self, descriptor, session, error):
        if session != self._session:
            logger.debug("discarding stale activation failure of %s: %s" % (descriptor.name, error))
            self._release(descriptor)
            return self._state
        descriptor.connector.deactivate()
        classified = ClassifiedError.of(error)
        logger.info("activation of %s failed: %s" % (descriptor.name, classified.kind.name))
        return self._set(ConnectionState(ConnectionStatus.ERRORED, descriptor, error=classified))

    def _cancelled(self, descriptor, session):
        self._release(descriptor)
        if session == self._session:
            self._session += 1
            self._set(INITIAL_STATE)

    def _release(self, descriptor):
        """ deactivates the connector of an abandoned activation, unless a newer session uses it """
        connector = descriptor.connector
        in_flight = self.activating
        if connector is not self._state.connector and (in_flight is None or in_flight.connector is not connector):
            connector.deactivate()

    def _connector_event(self, event):
        state = self._state
        if event.connector is not state.connector:
            return
        if isinstance(event, ConnectorDeactivateEvent):
            logger.info("%s ended the session" % state.descriptor.name)
            self.deactivate()
        elif isinstance(event, ConnectorErrorEvent):
            logger.warning("%s reported an error: %s" % (state.descriptor.name, event.error))
            self._set(state._replace(status=ConnectionStatus.ERRORED, error=ClassifiedError.of(event.error)))
        elif isinstance(event, ConnectorUpdateEvent):
            self._update(state, event)

    def _update(self, state, event: ConnectorUpdateEvent):
        changes = {}
        if event.provider is not None and event.provider is not state.provider:
            self._watch_blocks(event.provider)
            changes['provider'] = event.provider
        if event.chain_id is not None:
            changes['chain_id'] = event.chain_id
        if event.account_changed:
            changes['account'] = event.account
        state = state._replace(**changes)
        if not self.is_supported(state.chain_id):
            error = UnsupportedChainIdError(state.chain_id, self.supported_chain_ids)
            state = state._replace(status=ConnectionStatus.ERRORED, error=ClassifiedError.of(error))
        elif state.error is not None and state.error.kind is ErrorKind.UNSUPPORTED_CHAIN:
            state = state._replace(status=ConnectionStatus.ACTIVE, error=None)
        self._set(state)

    def _watch_blocks(self, provider):
        if self._block_subscription is not None:
            self._block_subscription.close()
        self._block_subscription = Subscription.listen(provider, BLOCK, self.blocks.fire)

    def _close_subscriptions(self):
        for s in (self._block_subscription, self._connector_subscription):
            if s is not None:
                s.close()
        self._block_subscription = None
        self._connector_subscription = None

    def _set(self, state):
        self._transition(state)
        return state

    def _transition(self, state):
        """ replaces the state and fires a change event. Returns the event, or None when nothing changed. """
        previous = self._state
        if state == previous:
            return None
        self._state = state
        event = ConnectionStateChangedEvent(previous, state)
        self.events.fire(event)
        return event
