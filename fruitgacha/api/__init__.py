from fruitgacha.api.admin import router as admin_router
from fruitgacha.api.collection import router as collection_router
from fruitgacha.api.economy import router as economy_router
from fruitgacha.api.health import router as health_router
from fruitgacha.api.pulls import router as pulls_router

__all__ = [
    "admin_router",
    "collection_router",
    "economy_router",
    "health_router",
    "pulls_router",
]
