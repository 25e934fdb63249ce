"""Collaborator stores for the queue core."""

from .base import BusinessDirectory, TicketStore, SequenceStore, Notifier
from .memory import InMemoryBusinessDirectory, InMemoryTicketStore, InMemorySequenceStore
from .mongo import MongoBusinessDirectory, MongoTicketStore, MongoSequenceStore

__all__ = [
    "BusinessDirectory", "TicketStore", "SequenceStore", "Notifier",
    "InMemoryBusinessDirectory", "InMemoryTicketStore", "InMemorySequenceStore",
    "MongoBusinessDirectory", "MongoTicketStore", "MongoSequenceStore",
]
