"""Infrastructure layer exports."""

from .changefeed import ChangeEvent, ChangeFeed, LocalChangeFeed, Subscription
from .datastore import Datastore, InMemoryDatastore
from .storage import BlobStore, InMemoryBlobStore
from .supabase import PostgrestDatastore, SupabaseStorage

__all__ = [
    "BlobStore",
    "ChangeEvent",
    "ChangeFeed",
    "Datastore",
    "InMemoryBlobStore",
    "InMemoryDatastore",
    "LocalChangeFeed",
    "PostgrestDatastore",
    "Subscription",
    "SupabaseStorage",
]
