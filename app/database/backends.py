"""Builds the store and principal directory selected by ``STORE_BACKEND``."""

import logging
from dataclasses import dataclass

from app.config.settings import Settings
from app.database.base import PrincipalDirectory, ProfileStore
from app.database.memory_directory import InMemoryPrincipalDirectory
from app.database.memory_store import InMemoryProfileStore
from app.database.supabase_client import SupabaseClient
from app.database.supabase_directory import SupabasePrincipalDirectory
from app.database.supabase_store import SupabaseProfileStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Backend:
    store: ProfileStore
    directory: PrincipalDirectory
    name: str


def create_backend(settings: Settings) -> Backend:
    if settings.store_backend == "memory":
        logger.info("Using in-memory profile store")
        return Backend(
            store=InMemoryProfileStore(),
            directory=InMemoryPrincipalDirectory(auto_confirm_email=settings.memory_auto_confirm_email),
            name="memory",
        )
    if not settings.is_supabase_configured():
        logger.warning("Supabase not properly configured. Please check your environment variables.")
    handle = SupabaseClient(settings)
    return Backend(
        store=SupabaseProfileStore(handle),
        directory=SupabasePrincipalDirectory(handle),
        name="supabase",
    )
