from fastapi import APIRouter, Depends

from gymledger.repositories.membership_repository import MembershipRepository
from gymledger.routes.deps import get_repository
from gymledger.utils.settings import settings

from .health_checks.storage_healthcheck import storage_healthcheck


router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
def health_root():
    return {"ok": True, "version": settings.GYMLEDGER_VERSION}


@router.get("/storage")
def health_storage(repo: MembershipRepository = Depends(get_repository)):
    return storage_healthcheck(repo)
