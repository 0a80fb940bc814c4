"""Notifier registry — where order notifications are sent.

Uses the in-memory fake notifier by default. A real mail adapter can be
installed at startup with ``set_notifier``.
"""

_notifier = None


def get_notifier():
    """Return the configured notifier (singleton)."""
    global _notifier
    if _notifier is None:
        from ordering.notifier.fake import FakeNotifier

        _notifier = FakeNotifier()
    return _notifier


def set_notifier(notifier) -> None:
    global _notifier
    _notifier = notifier


def reset_notifier() -> None:
    """Drop the current notifier (useful for testing)."""
    global _notifier
    _notifier = None
