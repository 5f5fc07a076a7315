from __future__ import annotations

from typing import Any, Dict

from gymledger.repositories.membership_repository import MembershipRepository

# Valid uuid that never matches a row; the checks only need the tables to answer.
SENTINEL_ID = "00000000-0000-0000-0000-000000000000"


def storage_healthcheck(repo: MembershipRepository) -> Dict[str, Any]:
    checks: Dict[str, Any] = {"members": False, "plans": False, "memberships": False, "transactions": False}
    errors: Dict[str, str] = {}

    try:
        repo.get_member(SENTINEL_ID)
        checks["members"] = True
    except Exception as e:
        errors["members"] = str(e)

    try:
        repo.get_plan(SENTINEL_ID)
        checks["plans"] = True
    except Exception as e:
        errors["plans"] = str(e)

    try:
        if isinstance(repo.list_memberships(SENTINEL_ID), list):
            checks["memberships"] = True
    except Exception as e:
        errors["memberships"] = str(e)

    try:
        if isinstance(repo.list_transactions(member_id=SENTINEL_ID, limit=1), list):
            checks["transactions"] = True
    except Exception as e:
        errors["transactions"] = str(e)

    return {"ok": all(checks.values()), "checks": checks, "errors": errors}
