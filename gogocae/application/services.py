"""Process-wide wiring of collaborators and services."""
from __future__ import annotations

import logging
from dataclasses import dataclass

from gogocae.core.settings import Settings
from gogocae.domain import FORWARD_TRANSITIONS, PERMISSIVE_TRANSITIONS
from gogocae.infrastructure import (
    BlobStore,
    ChangeFeed,
    Datastore,
    InMemoryBlobStore,
    InMemoryDatastore,
    LocalChangeFeed,
    PostgrestDatastore,
    SupabaseStorage,
)

from .chat import ChatService
from .history import HistoryRecorder
from .notifications import NotificationService
from .reporting import ReportingService
from .requests import Clock, RequestService, utc_now
from .users import UserService
from .vehicles import VehicleService

logger = logging.getLogger(__name__)


@dataclass
class DeskServices:
    settings: Settings
    datastore: Datastore
    blob_store: BlobStore
    change_feed: ChangeFeed
    users: UserService
    vehicles: VehicleService
    history: HistoryRecorder
    notifications: NotificationService
    requests: RequestService
    chat: ChatService
    reporting: ReportingService


def build_services(
    settings: Settings | None = None,
    *,
    datastore: Datastore | None = None,
    blob_store: BlobStore | None = None,
    change_feed: ChangeFeed | None = None,
    clock: Clock = utc_now,
) -> DeskServices:
    """Assemble the services; explicit collaborators win over settings."""

    settings = settings or Settings.from_env()
    change_feed = change_feed or getattr(datastore, "change_feed", None) or LocalChangeFeed()
    if datastore is None:
        if settings.uses_remote_backend:
            logger.info("using PostgREST datastore at %s", settings.supabase_url)
            datastore = PostgrestDatastore(
                settings.supabase_url,  # type: ignore[arg-type]
                settings.supabase_key,  # type: ignore[arg-type]
                change_feed=change_feed,
                timeout=settings.http_timeout,
            )
        else:
            datastore = InMemoryDatastore(change_feed=change_feed)
    elif datastore.change_feed is None:
        # watchers only see writes the datastore publishes
        datastore.change_feed = change_feed
    if blob_store is None:
        if settings.uses_remote_backend:
            blob_store = SupabaseStorage(
                settings.supabase_url,  # type: ignore[arg-type]
                settings.supabase_key,  # type: ignore[arg-type]
                bucket=settings.storage_bucket,
                timeout=settings.http_timeout,
            )
        else:
            blob_store = InMemoryBlobStore(f"memory://{settings.storage_bucket}")

    transitions = FORWARD_TRANSITIONS if settings.enforce_forward_transitions else PERMISSIVE_TRANSITIONS
    users = UserService(datastore)
    vehicles = VehicleService(datastore)
    history = HistoryRecorder(datastore)
    notifications = NotificationService(datastore, change_feed=change_feed)
    requests = RequestService(
        datastore,
        blob_store,
        users=users,
        history=history,
        notifications=notifications,
        change_feed=change_feed,
        clock=clock,
        transitions=transitions,
    )
    chat = ChatService(datastore, requests=requests, notifications=notifications, change_feed=change_feed, clock=clock)
    reporting = ReportingService(requests, vehicles, users)
    return DeskServices(
        settings=settings,
        datastore=datastore,
        blob_store=blob_store,
        change_feed=change_feed,
        users=users,
        vehicles=vehicles,
        history=history,
        notifications=notifications,
        requests=requests,
        chat=chat,
        reporting=reporting,
    )


_services: DeskServices | None = None


def get_services() -> DeskServices:
    """Return the singleton services for the process."""

    global _services
    if _services is None:
        _services = build_services()
    return _services


def configure_services(services: DeskServices) -> None:
    global _services
    _services = services


def reset_desk_state() -> None:
    """Drop the process services so the next call rebuilds them (used in tests)."""

    global _services
    _services = None
