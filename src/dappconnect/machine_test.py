import asyncio
import unittest
from unittest.mock import AsyncMock, Mock

from hamcrest import assert_that, contains_exactly, empty, has_length, is_, none

from dappconnect.connector.base import Activation, Connector, NoProviderError
from dappconnect.errors import AlreadyActivatingError, ErrorKind
from dappconnect.machine import ConnectionStateMachine
from dappconnect.provider import BLOCK
from dappconnect.registry import ConnectorDescriptor
from dappconnect.state import INITIAL_STATE, UNKNOWN, ConnectionStatus
from dappconnect.support.events import EventEmitter


class FakeProvider(EventEmitter):
    """ a provider that emits blocks on demand and answers reads from mocks """

    def __init__(self, block_number=100, balance=0):
        super().__init__()
        self.get_block_number = AsyncMock(return_value=block_number)
        self.get_balance = AsyncMock(return_value=balance)


class FakeConnector(Connector):
    """
    A connector whose activation can be held open with a gate, to simulate a pending wallet prompt.
    """

    def __init__(self, chain_id=1, account="0xAAA", provider=None):
        super().__init__()
        self.chain_id = chain_id
        self.account = account
        self.provider = provider or FakeProvider()
        self.error = None
        self.gate = None
        self.activate_calls = 0
        self.deactivate_calls = 0

    def hold(self):
        self.gate = asyncio.Event()
        return self.gate

    async def activate(self):
        self.activate_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return Activation(self.provider, self.chain_id, self.account)

    def deactivate(self):
        self.deactivate_calls += 1


def descriptor(name="Injected", **kwargs):
    return ConnectorDescriptor(name, FakeConnector(**kwargs))


async def until(predicate, attempts=20):
    """ yields to the loop until the predicate holds """
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


class ActivateTest(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.sut = ConnectionStateMachine(supported_chain_ids=(1, 4))
        self.listener = Mock()
        self.sut.events += self.listener
        self.a = descriptor("A")
        self.b = descriptor("B", account="0xBBB")

    def test_initial_state(self):
        state = self.sut.state
        assert_that(state, is_(INITIAL_STATE))
        assert_that(state.status, is_(ConnectionStatus.DISCONNECTED))
        assert_that(state.account, is_(UNKNOWN))
        assert_that(state.active, is_(False))

    async def test_activate_success(self):
        state = await self.sut.activate(self.a)
        assert_that(state.status, is_(ConnectionStatus.ACTIVE))
        assert_that(state.active, is_(True))
        assert_that(state.connector, is_(self.a.connector))
        assert_that(state.provider, is_(self.a.connector.provider))
        assert_that(state.chain_id, is_(1))
        assert_that(state.account, is_("0xAAA"))
        assert_that(state.error, is_(none()))
        assert_that(self.sut.state, is_(state))

    async def test_activate_fires_activating_then_active(self):
        await self.sut.activate(self.a)
        statuses = [c.args[0].state.status for c in self.listener.call_args_list]
        assert_that(statuses, contains_exactly(ConnectionStatus.ACTIVATING, ConnectionStatus.ACTIVE))
        first = self.listener.call_args_list[0].args[0]
        assert_that(first.previous, is_(INITIAL_STATE))

    async def test_activation_failure_is_recorded(self):
        self.a.connector.error = NoProviderError()
        state = await self.sut.activate(self.a)
        assert_that(state.status, is_(ConnectionStatus.ERRORED))
        assert_that(state.error.kind, is_(ErrorKind.NO_PROVIDER))
        assert_that(state.connector, is_(none()))
        assert_that(state.provider, is_(none()))
        assert_that(state.active, is_(False))
        assert_that(self.a.connector.deactivate_calls, is_(1))

    async def test_unsupported_chain_on_activation(self):
        d = descriptor("C", chain_id=9999)
        state = await self.sut.activate(d)
        assert_that(state.status, is_(ConnectionStatus.ERRORED))
        assert_that(state.error.kind, is_(ErrorKind.UNSUPPORTED_CHAIN))
        assert_that(state.provider, is_(none()))
        assert_that(d.connector.provider.listener_count(BLOCK), is_(0))

    async def test_any_chain_without_supported_set(self):
        sut = ConnectionStateMachine()
        state = await sut.activate(descriptor("C", chain_id=9999))
        assert_that(state.active, is_(True))

    async def test_activate_same_connector_when_active(self):
        await self.sut.activate(self.a)
        self.listener.reset_mock()
        await self.sut.activate(self.a)
        assert_that(self.a.connector.activate_calls, is_(1))
        self.listener.assert_not_called()

    async def test_activate_other_connector_deactivates_first(self):
        await self.sut.activate(self.a)
        state = await self.sut.activate(self.b)
        assert_that(self.a.connector.deactivate_calls, is_(1))
        assert_that(self.a.connector.provider.listener_count(BLOCK), is_(0))
        assert_that(state.connector, is_(self.b.connector))
        assert_that(state.account, is_("0xBBB"))

    async def test_retry_after_failure(self):
        self.a.connector.error = NoProviderError()
        await self.sut.activate(self.a)
        self.a.connector.error = None
        state = await self.sut.activate(self.a)
        assert_that(state.active, is_(True))
        assert_that(state.error, is_(none()))


class SingleFlightTest(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.sut = ConnectionStateMachine()
        self.a = descriptor("A")
        self.b = descriptor("B", account="0xBBB")

    async def test_other_activation_rejected_while_in_flight(self):
        gate = self.a.connector.hold()
        task = asyncio.ensure_future(self.sut.activate(self.a))
        await until(lambda: self.sut.activating is not None)
        before = self.sut.state

        with self.assertRaises(AlreadyActivatingError) as raised:
            await self.sut.activate(self.b)
        assert_that(raised.exception.in_flight, is_("A"))
        assert_that(self.sut.state, is_(before))
        assert_that(self.b.connector.activate_calls, is_(0))

        gate.set()
        state = await task
        assert_that(state.connector, is_(self.a.connector))
        assert_that(self.sut.state.account, is_("0xAAA"))
        assert_that(self.sut.activating, is_(none()))

    async def test_same_activation_joins_in_flight(self):
        gate = self.a.connector.hold()
        first = asyncio.ensure_future(self.sut.activate(self.a))
        await until(lambda: self.sut.activating is not None)
        second = asyncio.ensure_future(self.sut.activate(self.a))
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(first, second)
        assert_that(results[0], is_(results[1]))
        assert_that(self.a.connector.activate_calls, is_(1))

    async def test_activating_state(self):
        gate = self.a.connector.hold()
        task = asyncio.ensure_future(self.sut.activate(self.a))
        await until(lambda: self.sut.activating is not None)
        assert_that(self.sut.activating, is_(self.a))
        assert_that(self.sut.state.status, is_(ConnectionStatus.ACTIVATING))
        assert_that(self.sut.state.active, is_(False))
        gate.set()
        await task


class DeactivateTest(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.sut = ConnectionStateMachine()
        self.listener = Mock()
        self.sut.events += self.listener
        self.a = descriptor("A")
        self.b = descriptor("B")

    async def test_deactivate_resets_state(self):
        await self.sut.activate(self.a)
        self.sut.deactivate()
        state = self.sut.state
        assert_that(state, is_(INITIAL_STATE))
        assert_that(state.account, is_(UNKNOWN))
        assert_that(self.a.connector.deactivate_calls, is_(1))

    async def test_deactivate_twice_is_idempotent(self):
        await self.sut.activate(self.a)
        self.sut.deactivate()
        first = self.sut.state
        self.listener.reset_mock()
        self.sut.deactivate()
        assert_that(self.sut.state, is_(first))
        self.listener.assert_not_called()
        assert_that(self.a.connector.deactivate_calls, is_(1))

    def test_deactivate_when_disconnected(self):
        self.sut.deactivate()
        assert_that(self.sut.state, is_(INITIAL_STATE))
        self.listener.assert_not_called()

    async def test_deactivate_detaches_block_listener(self):
        await self.sut.activate(self.a)
        provider = self.a.connector.provider
        assert_that(provider.listener_count(BLOCK), is_(1))
        blocks = Mock()
        self.sut.blocks += blocks
        provider.emit(BLOCK, 101)
        blocks.assert_called_once_with(101)

        self.sut.deactivate()
        assert_that(provider.listener_count(BLOCK), is_(0))
        provider.emit(BLOCK, 102)
        blocks.assert_called_once_with(101)

    async def test_deactivate_detaches_before_releasing_provider(self):
        await self.sut.activate(self.a)
        provider = self.a.connector.provider
        counts = []
        self.listener.side_effect = lambda event: counts.append(provider.listener_count(BLOCK))
        self.sut.deactivate()
        assert_that(counts, is_([0]))

    async def test_deactivate_during_activation_discards_result(self):
        gate = self.a.connector.hold()
        task = asyncio.ensure_future(self.sut.activate(self.a))
        await until(lambda: self.sut.activating is not None)
        self.sut.deactivate()
        assert_that(self.sut.state, is_(INITIAL_STATE))
        assert_that(self.sut.activating, is_(none()))

        gate.set()
        await task
        assert_that(self.sut.state, is_(INITIAL_STATE))
        assert_that(self.sut.state.active, is_(False))
        assert_that(self.a.connector.provider.listener_count(BLOCK), is_(0))
        assert_that(self.a.connector.deactivate_calls, is_(1))

    async def test_interleaved_operations(self):
        # the most recent resolved operation decides if the state is active
        gate = self.a.connector.hold()
        stale = asyncio.ensure_future(self.sut.activate(self.a))
        await until(lambda: self.sut.activating is not None)
        self.sut.deactivate()
        await self.sut.activate(self.b)
        gate.set()
        await stale
        assert_that(self.sut.state.active, is_(True))
        assert_that(self.sut.state.connector, is_(self.b.connector))
        self.sut.deactivate()
        assert_that(self.sut.state.active, is_(False))
        await self.sut.activate(self.b)
        assert_that(self.sut.state.active, is_(True))

    async def test_stale_activation_does_not_release_connector_in_use(self):
        gate = self.a.connector.hold()
        stale = asyncio.ensure_future(self.sut.activate(self.a))
        await until(lambda: self.sut.activating is not None)
        self.sut.deactivate()
        self.a.connector.gate = None
        await self.sut.activate(self.a)
        gate.set()
        await stale
        assert_that(self.sut.state.active, is_(True))
        assert_that(self.a.connector.deactivate_calls, is_(0))


class ConnectorEventsTest(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        self.sut = ConnectionStateMachine(supported_chain_ids=(1, 4))
        self.a = descriptor("A")

    async def asyncSetUp(self):
        await self.sut.activate(self.a)

    def test_account_change(self):
        self.a.connector._update(account="0xBBB")
        assert_that(self.sut.state.account, is_("0xBBB"))
        self.a.connector._update(account=None)
        assert_that(self.sut.state.account, is_(none()))
        assert_that(self.sut.state.active, is_(True))

    def test_chain_change_keeps_account(self):
        self.a.connector._update(chain_id=4)
        assert_that(self.sut.state.chain_id, is_(4))
        assert_that(self.sut.state.account, is_("0xAAA"))

    def test_unsupported_chain_then_supported(self):
        self.a.connector._update(chain_id=9999)
        state = self.sut.state
        assert_that(state.status, is_(ConnectionStatus.ERRORED))
        assert_that(state.error.kind, is_(ErrorKind.UNSUPPORTED_CHAIN))
        assert_that(state.connector, is_(self.a.connector))
        assert_that(state.active, is_(False))

        self.a.connector._update(chain_id=1)
        state = self.sut.state
        assert_that(state.status, is_(ConnectionStatus.ACTIVE))
        assert_that(state.error, is_(none()))
        assert_that(state.active, is_(True))

    def test_provider_change_moves_block_subscription(self):
        old = self.a.connector.provider
        new = FakeProvider()
        self.a.connector._update(chain_id=4, provider=new)
        assert_that(self.sut.state.provider, is_(new))
        assert_that(old.listener_count(BLOCK), is_(0))
        assert_that(new.listener_count(BLOCK), is_(1))

    def test_deactivate_event(self):
        self.a.connector._deactivated()
        assert_that(self.sut.state, is_(INITIAL_STATE))
        assert_that(self.a.connector.events.handlers(), is_(empty()))

    def test_error_event(self):
        self.a.connector._error(RuntimeError("socket closed"))
        state = self.sut.state
        assert_that(state.status, is_(ConnectionStatus.ERRORED))
        assert_that(state.error.kind, is_(ErrorKind.UNKNOWN))

    def test_events_after_deactivate_ignored(self):
        connector = self.a.connector
        self.sut.deactivate()
        assert_that(connector.events.handlers(), has_length(0))
        connector._update(account="0xBBB")
        assert_that(self.sut.state, is_(INITIAL_STATE))


if __name__ == '__main__':  # pragma no cover
    unittest.main()
