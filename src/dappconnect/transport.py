"""
Transports carry JSON-RPC requests to a node or wallet. The contract follows EIP-1193:

- request(method, params) - a coroutine that returns the decoded result or raises RpcError
- on(event, handler) / remove_listener(event, handler) - wallet notifications such as
  'connect', 'chainChanged', 'accountsChanged' and 'disconnect'.

Injected wallets provide their own transport. HttpTransport talks to a remote JSON-RPC endpoint.
"""
import itertools
import logging

import aiohttp

from dappconnect.support.events import EventEmitter

logger = logging.getLogger(__name__)

# EIP-1193 error code for a request the user declined
USER_REJECTED_REQUEST = 4001


class RpcError(IOError):
    """ An error response to a JSON-RPC request. """

    def __init__(self, code, message, data=None):
        super().__init__(code, message)
        self.code = code
        self.message = message
        self.data = data

    def __str__(self):
        return "%s (code %s)" % (self.message, self.code)


def parse_quantity(value) -> int:
    """
    Converts a JSON-RPC quantity to an int.
    >>> parse_quantity('0x1f')
    31
    >>> parse_quantity('42')
    42
    >>> parse_quantity(7)
    7
    """
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text[:2].lower() == '0x':
            return int(text, 16)
        return int(text)
    raise ValueError("not a quantity: %r" % (value,))


class Transport(EventEmitter):
    """ Base class for transports. Subclasses implement request(). """

    async def request(self, method, params=None):
        raise NotImplementedError


class HttpTransport(Transport):
    """
    JSON-RPC 2.0 over HTTP POST. A client session is opened per request, so there is nothing to close.

    :param url      the endpoint url
    :param timeout  total request timeout in seconds
    """

    def __init__(self, url, timeout=30.0):
        super().__init__()
        self.url = url
        self.timeout = timeout
        self._ids = itertools.count(1)

    def _encode(self, method, params):
        return {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": list(params) if params else []
        }

    @staticmethod
    def _decode(payload):
        """ extracts the result from a response payload, raising RpcError for error responses """
        error = payload.get("error")
        if error is not None:
            raise RpcError(error.get("code"), error.get("message", "unknown error"), error.get("data"))
        if "result" not in payload:
            raise RpcError(None, "malformed response: %r" % (payload,))
        return payload["result"]

    async def request(self, method, params=None):
        body = self._encode(method, params)
        timeout_config = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout_config) as session:
            async with session.post(self.url, json=body,
                                    headers={"Content-Type": "application/json"}) as response:
                if response.status != 200:
                    raise RpcError(response.status, "HTTP error %s from %s" % (response.status, self.url))
                payload = await response.json()
        logger.debug("%s -> %s" % (method, self.url))
        return self._decode(payload)
