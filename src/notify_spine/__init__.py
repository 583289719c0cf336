"""
notify-spine: keep a remote REST API in step with local SQLAlchemy models.

Register a model as notifiable, install the session listeners, and every
committed create, update or destroy becomes a persisted sync task executed
asynchronously with bounded retry.

Example::

    from notify_spine import notifiable, runtime

    @notifiable(["vin", "make", "dealer.title"], {"id": "id"})
    class Vehicle(Base):
        ...

    SessionLocal = runtime.setup()
"""

__version__ = "0.1.0"

from notify_spine.config import (
    Settings,
    activation_override,
    get_settings,
    init_activation,
    is_active,
)
from notify_spine.dispatcher import Dispatcher
from notify_spine.endpoints import (
    LIFECYCLE_METHODS,
    EndpointConfig,
    HttpMethod,
    LifecycleEvent,
)
from notify_spine.errors import (
    ConfigError,
    ErrorCategory,
    ErrorContext,
    ExhaustedSynchronization,
    NotifiableNotRegistered,
    NotifyError,
    TaskNotFound,
    TransportFailure,
    UnresolvedIdentifier,
)
from notify_spine.listeners import SessionListeners, install_listeners
from notify_spine.mixins import NotifiableMixin
from notify_spine.notifier import Notifier
from notify_spine.orm import SyncLogTable, TaskStatus, TaskTable
from notify_spine.registry import (
    NotifiableRegistry,
    Outcome,
    get_default_registry,
    notifiable,
    on_sync_failure,
    on_sync_success,
)
from notify_spine.repository import EntityRef, SyncRepository
from notify_spine.retry import RetryPolicy
from notify_spine.synchronizer import SyncResult, Synchronizer
from notify_spine.tracker import ChangeTracker

__all__ = [
    "__version__",
    # config
    "Settings",
    "get_settings",
    "init_activation",
    "is_active",
    "activation_override",
    # declaration
    "notifiable",
    "on_sync_success",
    "on_sync_failure",
    "NotifiableRegistry",
    "get_default_registry",
    "NotifiableMixin",
    "EndpointConfig",
    "HttpMethod",
    "LifecycleEvent",
    "LIFECYCLE_METHODS",
    "Outcome",
    # engine
    "ChangeTracker",
    "Notifier",
    "SessionListeners",
    "install_listeners",
    "Synchronizer",
    "SyncResult",
    "Dispatcher",
    "RetryPolicy",
    # persistence
    "TaskTable",
    "TaskStatus",
    "SyncLogTable",
    "SyncRepository",
    "EntityRef",
    # errors
    "NotifyError",
    "ErrorCategory",
    "ErrorContext",
    "ConfigError",
    "NotifiableNotRegistered",
    "TransportFailure",
    "UnresolvedIdentifier",
    "TaskNotFound",
    "ExhaustedSynchronization",
]
