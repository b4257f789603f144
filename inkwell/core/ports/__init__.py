# inkwell - Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from inkwell.core.ports.db import (
    EmailJobRepoPort,
    NewsletterRepoPort,
    PersistenceError,
    SubscriberRepoPort,
    TokenRepoPort,
    UnitOfWorkFactory,
    UnitOfWorkPort,
)
from inkwell.core.ports.email import EmailMessage, EmailPort, EmailResult, EmailStatus
from inkwell.core.ports.jobs import BatchResult, EmailDeliveryRunnerPort, JobResult, JobStatus

__all__ = [
    # Persistence
    "EmailJobRepoPort",
    "NewsletterRepoPort",
    "PersistenceError",
    "SubscriberRepoPort",
    "TokenRepoPort",
    "UnitOfWorkFactory",
    "UnitOfWorkPort",
    # Email
    "EmailMessage",
    "EmailPort",
    "EmailResult",
    "EmailStatus",
    # Delivery
    "BatchResult",
    "EmailDeliveryRunnerPort",
    "JobResult",
    "JobStatus",
]
