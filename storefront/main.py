import logging
import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from storefront.db import engine, Base
from storefront.errors import StoreError

from storefront.models.customer import Customer
from storefront.models.publisher import Publisher
from storefront.models.game import Game
from storefront.models.game_key import GameKey
from storefront.models.order import Order
from storefront.models.order_detail import OrderDetail
from storefront.models.refund_request import RefundRequest

from storefront.routes.orders import router as orders_router
from storefront.routes.publisher_games import router as publisher_games_router
from storefront.routes.publisher_dashboard import router as publisher_dashboard_router
from storefront.routes.statistics import router as statistics_router
from storefront.routes.admin import router as admin_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "https://localhost:3000",
    "http://127.0.0.1:3000",
    "https://127.0.0.1:3000",
]


def cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS")
    if not raw:
        return DEFAULT_CORS_ORIGINS
    return [o.strip() for o in raw.split(",") if o.strip()]


app = FastAPI(title="Game Storefront")

# ─── CORS ─────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(StoreError)
def store_error_handler(request: Request, exc: StoreError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(OperationalError)
def storage_error_handler(request: Request, exc: OperationalError):
    logger.error("storage unavailable", extra={"path": request.url.path, "error": str(exc.orig)})
    return JSONResponse(
        status_code=503,
        content={"detail": "STORAGE_UNAVAILABLE", "code": "STORAGE_UNAVAILABLE"},
    )


@app.on_event("startup")
def startup():
    Base.metadata.create_all(bind=engine)


app.include_router(orders_router)
app.include_router(publisher_games_router)
app.include_router(publisher_dashboard_router)
app.include_router(statistics_router)
app.include_router(admin_router)


@app.get("/")
def read_root():
    return {"message": "Game Storefront is running"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8001, reload=True)
