"""
The provider handle returned from a connector activation. Wraps a transport with typed read calls
and a polled "block" event.
"""
import asyncio
import logging

from dappconnect.support.events import EventEmitter
from dappconnect.transport import parse_quantity

logger = logging.getLogger(__name__)

# how often the block number is polled, in seconds
DEFAULT_POLLING_INTERVAL = 8.0

BLOCK = "block"


class Provider(EventEmitter):
    """
    Read access to a connected node.

    Listeners registered for the "block" event are called with each new block number. The block number
    is polled from the transport every polling_interval seconds, and only while there is at least one
    block listener. Other event names are plain emitter events.

    :param transport    the EIP-1193 style transport used to issue requests
    :param polling_interval seconds between block number polls
    """

    def __init__(self, transport, polling_interval=DEFAULT_POLLING_INTERVAL):
        super().__init__()
        self.transport = transport
        self.polling_interval = polling_interval
        self._poller = None
        self._last_block = None

    async def get_block_number(self) -> int:
        return parse_quantity(await self.transport.request("eth_blockNumber"))

    async def get_balance(self, account, block_tag="latest") -> int:
        """ the balance of the account in wei """
        return parse_quantity(await self.transport.request("eth_getBalance", [account, block_tag]))

    async def get_chain_id(self) -> int:
        return parse_quantity(await self.transport.request("eth_chainId"))

    @property
    def polling(self):
        return self._poller is not None

    def on(self, event_name, handler):
        super().on(event_name, handler)
        if event_name == BLOCK and self._poller is None:
            self._poller = asyncio.ensure_future(self._poll_blocks())
        return self

    def remove_listener(self, event_name, handler):
        super().remove_listener(event_name, handler)
        if event_name == BLOCK and not self.listener_count(BLOCK):
            self._stop_polling()
        return self

    def _stop_polling(self):
        poller = self._poller
        self._poller = None
        if poller is not None:
            poller.cancel()

    async def _poll_blocks(self):
        while True:
            try:
                block_number = await self.get_block_number()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning("block poll failed: %s" % e)
            else:
                if block_number != self._last_block:
                    self._last_block = block_number
                    self.emit(BLOCK, block_number)
            await asyncio.sleep(self.polling_interval)
