"""
HotelRental 主应用入口
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from rental.config import settings
from rental.database import init_db
from rental.routers import bookings, checkout

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    init_db()
    yield


app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)

app.include_router(bookings.router)
app.include_router(checkout.router)


@app.get("/health")
def health():
    return {"status": "ok", "app": settings.APP_NAME}
