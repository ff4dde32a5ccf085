from typing import Optional

from supabase import Client, ClientOptions, create_client

from app.config.settings import Settings
from app.core.errors import ConfigurationError


class SupabaseClient:
    """Store handle owning the anon and service-role clients.

    Constructed once at process start and passed to the backends. Clients
    are created lazily so building the handle never touches the network.
    Auth calls that mutate session state (sign up, sign in) get a fresh
    anon client each time so concurrent requests never share a session.
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._client: Optional[Client] = None
        self._service_client: Optional[Client] = None

    def _require_configured(self) -> None:
        if not self._settings.is_supabase_configured():
            raise ConfigurationError("SUPABASE_URL and SUPABASE_KEY must be set")

    def _options(self, headers: Optional[dict] = None) -> ClientOptions:
        return ClientOptions(
            headers={"X-Client-Info": self._settings.app_name, **(headers or {})},
            auto_refresh_token=False,
            persist_session=False,
        )

    def get_client(self) -> Client:
        if self._client is None:
            self._require_configured()
            self._client = create_client(self._settings.supabase_url, self._settings.supabase_key, options=self._options())
        return self._client

    def get_service_client(self) -> Client:
        """Client with service_role key; bypasses RLS. Used for bootstrap and admin operations."""
        if self._service_client is None:
            self._require_configured()
            if not self._settings.supabase_service_role_key:
                raise ConfigurationError("SUPABASE_SERVICE_ROLE_KEY must be set")
            self._service_client = create_client(
                self._settings.supabase_url,
                self._settings.supabase_service_role_key,
                options=self._options(),
            )
        return self._service_client

    def new_anon_client(self) -> Client:
        self._require_configured()
        return create_client(self._settings.supabase_url, self._settings.supabase_key, options=self._options())

    def for_user(self, access_token: str) -> Client:
        """Client whose PostgREST requests carry the caller's JWT, so Postgres applies RLS as that user."""
        self._require_configured()
        return create_client(
            self._settings.supabase_url,
            self._settings.supabase_key,
            options=self._options({"Authorization": f"Bearer {access_token}"}),
        )
