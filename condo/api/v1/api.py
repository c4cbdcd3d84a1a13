from fastapi import APIRouter
from condo.api.v1.endpoints import login, admins, condominiums, users, residents, occurrences, assemblies, messages, notifications

api_router = APIRouter()
api_router.include_router(login.router, tags=["login"])
api_router.include_router(admins.router, prefix="/admins", tags=["admins"])
api_router.include_router(condominiums.router, prefix="/condominiums", tags=["condominiums"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(residents.router, prefix="/users", tags=["residents"])
api_router.include_router(occurrences.router, tags=["occurrences"])
api_router.include_router(assemblies.router, prefix="/assemblies", tags=["assemblies"])
api_router.include_router(messages.router, tags=["messages"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
