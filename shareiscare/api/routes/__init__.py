"""Route registration."""

from fastapi import APIRouter

from shareiscare.api.routes import auth, files

api_router = APIRouter()

api_router.include_router(files.router, tags=["files"])
api_router.include_router(auth.router, tags=["auth"])
