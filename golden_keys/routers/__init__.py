from fastapi import APIRouter

from golden_keys.routers import golden_key

api_router = APIRouter()
api_router.include_router(golden_key.router)

__all__ = ["api_router"]
