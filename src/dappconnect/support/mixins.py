"""
Mixins for the value objects fired as events: connector events, state changes, derived values.
"""

# (id, id) pairs of the comparisons in progress. Events are compared on the loop thread only.
_comparing = set()


class StringerMixin:
    """
    str() gives the class name and the fields in name order, e.g.
    ConnectorUpdateEvent(account='0xAAA', account_changed=True, chain_id=None, ...)
    """

    def __str__(self):
        return "%s(%s)" % (type(self).__name__, self._fields_string())

    def _fields_string(self):
        return ", ".join("%s=%r" % (key, value) for key, value in sorted(vars(self).items()))


class CommonEqualityMixin:
    """
    Field by field equality. Events refer back to the objects that fired them, so a comparison that
    returns to a pair already being compared raises ValueError instead of recursing.
    """

    def __eq__(self, other):
        if not isinstance(other, self.__class__):
            return False
        key = (id(self), id(other))
        if key in _comparing:
            raise ValueError("recursive comparison of %s and %s" % (type(self).__name__, type(other).__name__))
        _comparing.add(key)
        try:
            return vars(self) == vars(other)
        finally:
            _comparing.discard(key)

    def __ne__(self, other):
        return not self.__eq__(other)

    __hash__ = None
