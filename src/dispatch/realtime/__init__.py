"""Realtime wiring: the process-wide connection hub and dispatch notifier.

Provides get_hub() / get_notifier() singletons and set_notifier() to swap
the notifier (useful for tests).
"""

from dispatch.realtime.hub import ConnectionHub

_hub: ConnectionHub | None = None
_notifier = None


def get_hub() -> ConnectionHub:
    global _hub
    if _hub is None:
        _hub = ConnectionHub()
    return _hub


def get_notifier():
    """Return the process-wide DispatchNotifier bound to the shared hub."""
    global _notifier
    if _notifier is None:
        from dispatch.realtime.notifier import DispatchNotifier

        _notifier = DispatchNotifier(get_hub())
    return _notifier


def set_notifier(notifier) -> None:
    global _notifier
    _notifier = notifier


def reset_realtime() -> None:
    """Drop all group memberships and the notifier (useful for testing)."""
    global _hub, _notifier
    _hub = None
    _notifier = None
