import logging
from typing import Any, Optional

from supabase import create_client

from gymledger.utils.settings import settings

log = logging.getLogger("gymledger.db")


def get_supabase() -> Optional[Any]:
    """
    New client per call; callers pass it on to a repository.
    Returns None when the service is not configured.
    """
    if not (settings.SUPABASE_URL and settings.SUPABASE_KEY):
        log.warning("Supabase env vars missing (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY)")
        return None
    try:
        return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    except Exception as e:
        log.error("Failed to initialize Supabase client: %s", e)
        return None
