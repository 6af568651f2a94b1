"""
Values derived from the connection state by reading the provider: the block height and the balance of the
connected account.

Each tracker follows the state machine and computes a governing tuple from each state. Whenever the tuple
changes, the tracker starts a new generation: the value is reset to UNKNOWN and a read is issued for the new
tuple. A read that completes after its generation has passed is discarded, so a value always belongs to the
current tuple.
"""
import asyncio
import logging
from abc import abstractmethod

from dappconnect.state import UNKNOWN, ConnectionState
from dappconnect.support.events import EventSource, close_all
from dappconnect.support.mixins import CommonEqualityMixin, StringerMixin

logger = logging.getLogger(__name__)


class DerivedValueChangedEvent(CommonEqualityMixin, StringerMixin):
    def __init__(self, tracker, value):
        self.tracker = tracker
        self.value = value


def same_tuple(a, b):
    """ governing tuples are equal when the providers are the same object and the other members are equal """
    if a is None or b is None:
        return a is b
    return a[0] is b[0] and a[1:] == b[1:]


class DerivedValueTracker:
    """
    Base class for trackers. Subclasses define the governing tuple for a state, with the provider as the
    first member, and how the value is read.

    value is UNKNOWN while not determined, None when the read failed, otherwise the value read.
    Fires DerivedValueChangedEvent from `events` when the value changes.
    """

    def __init__(self, machine):
        self.machine = machine
        self.events = EventSource()
        self.value = UNKNOWN
        self.generation = 0
        self._tuple = None
        self._pending = set()
        self._subscriptions = []
        self._machine_subscription = machine.events.subscribe(self._state_changed)
        self._follow(machine.state)

    @abstractmethod
    def governing_tuple(self, state: ConnectionState):
        """ :return: the tuple the value depends on, or None when there is no value for the state """
        raise NotImplementedError

    @abstractmethod
    async def read(self, key):
        raise NotImplementedError

    def _attach(self, key):
        """ :return: the subscriptions to hold for the lifetime of the tuple """
        return []

    def _state_changed(self, event):
        self._follow(event.state)

    def _follow(self, state):
        key = self.governing_tuple(state)
        if same_tuple(key, self._tuple):
            return
        self._tuple = key
        self.generation += 1
        self._subscriptions = close_all(self._subscriptions)
        self._set(UNKNOWN)
        if key is not None:
            self._subscriptions = self._attach(key)
            self._issue(key, self.generation)

    def _issue(self, key, generation):
        task = asyncio.ensure_future(self._read(key, generation))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _read(self, key, generation):
        try:
            value = await self.read(key)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("%s read failed: %s" % (type(self).__name__, e))
            value = None
        self._complete(generation, value)

    def _complete(self, generation, value):
        if generation != self.generation:
            logger.debug("%s discarding stale value %s from generation %d" %
                         (type(self).__name__, value, generation))
            return
        self._set(value)

    def _set(self, value):
        if value is self.value or (type(value) is type(self.value) and value == self.value):
            return
        self.value = value
        self.events.fire(DerivedValueChangedEvent(self, value))

    async def settle(self):
        """ waits for the reads in flight to complete """
        while self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def dispose(self):
        """ stops following the machine. Reads in flight are discarded when they complete. """
        self._machine_subscription.close()
        self._subscriptions = close_all(self._subscriptions)
        self._tuple = None
        self.generation += 1


class BlockHeightTracker(DerivedValueTracker):
    """
    The number of the latest block of the active provider. After the initial read, the value follows the
    blocks relayed by the machine.
    """

    def governing_tuple(self, state):
        return (state.provider, state.chain_id) if state.active else None

    async def read(self, key):
        provider, chain_id = key
        return await provider.get_block_number()

    def _attach(self, key):
        return [self.machine.blocks.subscribe(self._block)]

    def _block(self, block_number):
        self._set(block_number)


class BalanceTracker(DerivedValueTracker):
    """ The balance in wei of the connected account. There is no balance while the wallet reports no account. """

    def governing_tuple(self, state):
        if state.active and isinstance(state.account, str):
            return state.provider, state.account, state.chain_id
        return None

    async def read(self, key):
        provider, account, chain_id = key
        return await provider.get_balance(account)
