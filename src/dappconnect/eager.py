"""
Reconnects to a wallet that authorized the application in an earlier session, without prompting the user.
"""
import asyncio
import logging

from dappconnect.errors import AlreadyActivatingError, ClassifiedError
from dappconnect.support.events import EventSource
from dappconnect.support.mixins import CommonEqualityMixin, StringerMixin

logger = logging.getLogger(__name__)


class EagerConnectionCompletedEvent(CommonEqualityMixin, StringerMixin):
    """ The probe has completed. connected is True when it activated the session. """

    def __init__(self, probe, connected):
        self.probe = probe
        self.connected = connected


class EagerConnection:
    """
    A single-shot probe: when the connector reports the application is already authorized,
    the descriptor is activated on the machine.

    run() completes with True once the probe has finished, whatever the outcome, so that components waiting
    on the probe may proceed. The probe runs once, later calls return the same completion.
    Errors from the authorization check are classified and kept on `error`. They do not change the
    connection state.
    """

    def __init__(self, machine, descriptor):
        self.machine = machine
        self.descriptor = descriptor
        self.events = EventSource()
        self.error = None
        self._task = None

    @property
    def tried(self):
        return self._task is not None and self._task.done()

    async def run(self) -> bool:
        if self._task is None:
            self._task = asyncio.ensure_future(self._probe())
        return await asyncio.shield(self._task)

    async def _probe(self):
        connected = False
        try:
            authorized = await self.descriptor.connector.is_authorized()
            if authorized:
                logger.info("%s is authorized, connecting" % self.descriptor.name)
                state = await self.machine.activate(self.descriptor)
                connected = state.active
            else:
                logger.debug("%s is not authorized" % self.descriptor.name)
        except asyncio.CancelledError:
            raise
        except AlreadyActivatingError as e:
            logger.info("eager connection not started: %s" % e)
        except Exception as e:
            self.error = ClassifiedError.of(e)
            logger.info("eager connection to %s not possible: %s" % (self.descriptor.name, self.error.kind.name))
        self.events.fire(EagerConnectionCompletedEvent(self, connected))
        return True
