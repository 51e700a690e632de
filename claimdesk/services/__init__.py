"""
Remote client, repositories, cascade planning and the entity store
"""
from claimdesk.services.notifications import Notification, Notifier
from claimdesk.services.store import (EntityStore, OperationResult,
                                      OperationStatus, create_store)

__all__ = [
    "EntityStore",
    "Notification",
    "Notifier",
    "OperationResult",
    "OperationStatus",
    "create_store",
]
