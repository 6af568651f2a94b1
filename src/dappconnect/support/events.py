from collections import defaultdict


class EventSource(object):
    """
    A list of handlers that are called in order of registration when an event is fired.
    Handlers are called on the firing thread (in practice, the event loop.)
    """

    def __init__(self):
        self._handlers = []

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def add(self, handler):
        self._handlers.append(handler)
        return self

    def remove(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def subscribe(self, handler) -> 'Subscription':
        """ adds the handler and returns a subscription that removes it again when closed. """
        self.add(handler)
        return Subscription(lambda: self.remove(handler))

    def handlers(self):
        return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        self._fire(*args, **kwargs)

    def fire_all(self, events):
        self._fire_all(events)

    def _fire_all(self, events):
        for e in events:
            self._fire(e)

    def _fire(self, *args, **kwargs):
        # handlers may unsubscribe while being notified
        for handler in self.handlers():
            handler(*args, **kwargs)


class EventEmitter:
    """
    Named events in the style of a javascript event emitter - on(name, handler), remove_listener(name, handler)
    and emit(name, *args). Injected wallet transports and providers expose this interface.
    """

    def __init__(self):
        self._sources = defaultdict(EventSource)

    def on(self, event_name, handler):
        self._sources[event_name].add(handler)
        return self

    def remove_listener(self, event_name, handler):
        source = self._sources.get(event_name)
        if source is not None:
            source.remove(handler)
        return self

    def listener_count(self, event_name):
        source = self._sources.get(event_name)
        return len(source.handlers()) if source is not None else 0

    def emit(self, event_name, *args):
        source = self._sources.get(event_name)
        if source is not None:
            source.fire(*args)


class Subscription:
    """
    A handle on a registered handler. The handler is detached exactly once, on close() or when
    leaving a with block. Components keep the subscriptions they open and close them when the scope that
    opened them ends.

    :param detach   a callable that removes the handler from whatever it was registered with.
    """

    def __init__(self, detach):
        self._detach = detach

    @classmethod
    def listen(cls, emitter, event_name, handler):
        """ registers the handler with an emitter supporting on/remove_listener """
        emitter.on(event_name, handler)
        return cls(lambda: emitter.remove_listener(event_name, handler))

    @property
    def closed(self):
        return self._detach is None

    def close(self):
        detach = self._detach
        self._detach = None
        if detach is not None:
            detach()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def close_all(subscriptions):
    """ closes each subscription in the iterable. Returns an empty list to replace the one given. """
    for s in subscriptions:
        s.close()
    return []
