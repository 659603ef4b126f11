from fastapi import APIRouter

from slipbook.api.pipeline import router as pipeline_router
from slipbook.api.quotes import router as quotes_router
from slipbook.api.settlement import router as settlement_router
from slipbook.api.wagers import router as wagers_router

api_router = APIRouter()
api_router.include_router(wagers_router)
api_router.include_router(settlement_router)
api_router.include_router(quotes_router)

api_router.include_router(pipeline_router)
