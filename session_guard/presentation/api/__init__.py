from fastapi import APIRouter

from . import auth, profile, sessions, system

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(profile.router, prefix="/profile", tags=["profile"])
api_router.include_router(sessions.router, prefix="/sessions", tags=["sessions"])
api_router.include_router(system.router, prefix="/system")
