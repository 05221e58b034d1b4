import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

import addresses
import auth
import categories
import database
import messages
import orders
import payments
import products
import source_addresses
from config import settings
from errors import register_error_handlers
from logging_setup import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.log_level)
    try:
        database.ensure_indexes()
        auth.ensure_admin()
    except Exception:
        # keep serving: requests will get 503 until the database is back
        logger.exception("Database setup failed on startup")
    yield


app = FastAPI(title="Furniture Store API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

for module in (auth, categories, products, orders, payments, messages, addresses, source_addresses):
    app.include_router(module.router)

os.makedirs(settings.upload_dir, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")


@app.get("/")
def read_root():
    return {"message": "Furniture Store API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "Running",
        "database_url": "Set" if settings.database_url else "Not Set",
    }
    response.update(database.ping())
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
