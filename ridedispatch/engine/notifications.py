"""Notification channel contract used by the dispatch engine."""

from abc import ABC, abstractmethod
from typing import Any


class NotificationChannel(ABC):
    """Push-to-one and broadcast-to-many over live connections."""

    @abstractmethod
    async def push_to_driver(self, driver_id: str, payload: dict[str, Any]) -> None:
        """
        Deliver a payload to one connected driver.

        Raises:
            ChannelUnavailable: The driver has no open connection.
        """

    @abstractmethod
    async def broadcast(self, event: str, payload: dict[str, Any]) -> None:
        """Deliver an event to every observer (riders, admin consoles)."""
