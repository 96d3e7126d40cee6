"""
Message Bus Interface

The only thing stages need from the transport is publish(). Delivery,
redelivery and dead-lettering belong to the transport and its worker.
"""

from abc import ABC, abstractmethod
from typing import Any, Mapping


class MessageBus(ABC):
    """Abstract publish side of a queue transport."""

    @abstractmethod
    async def publish(self, queue: str, payload: Mapping[str, Any]) -> str:
        """
        Publish a JSON-serializable payload.

        Returns:
            Message id
        """
        ...
