from datetime import datetime
from typing import Callable

from gymledger.db import get_supabase
from gymledger.repositories.membership_repository import MembershipRepository
from gymledger.services.errors import StorageUnavailable
from gymledger.services.membership.models import utc_now


def get_repository() -> MembershipRepository:
    sb = get_supabase()
    if not sb:
        raise StorageUnavailable("Supabase not configured")
    return MembershipRepository(sb)


def get_clock() -> Callable[[], datetime]:
    return utc_now
