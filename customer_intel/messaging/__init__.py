"""
Messaging

Modules:
    queues: Queue names
    base: MessageBus publish contract
    memory: InMemoryMessageBus with receive counts and dead-letter lists
    worker: QueueWorker applying the redelivery / dead-letter policy
"""

from customer_intel.messaging.base import MessageBus
from customer_intel.messaging.memory import DeadLetter, Envelope, InMemoryMessageBus
from customer_intel.messaging.worker import QueueWorker, WorkerMetrics

__all__ = [
    "DeadLetter",
    "Envelope",
    "InMemoryMessageBus",
    "MessageBus",
    "QueueWorker",
    "WorkerMetrics",
]
