from supabase import create_client, Client
from idsync.config import settings


class SupabaseClient:
    _service_client: Client = None

    @classmethod
    def get_service_client(cls) -> Client:
        """Client with service_role key; bypasses RLS. Used by the sync handlers only."""
        if cls._service_client is None:
            if not settings.supabase_service_role_key:
                raise RuntimeError("Service role key not configured")
            cls._service_client = create_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        return cls._service_client

    @classmethod
    def for_token(cls, token: str) -> Client:
        """Fresh anon-key client that forwards the caller's token so the store evaluates RLS."""
        client = create_client(settings.supabase_url, settings.supabase_key)
        client.postgrest.auth(token)
        return client

    @classmethod
    def reset_client(cls):
        cls._service_client = None
