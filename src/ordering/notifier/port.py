"""Notifier port — abstract interface for customer notifications."""

from abc import ABC, abstractmethod


class NotifierPort(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, body: str, kind: str) -> dict:
        """Deliver one notification.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
