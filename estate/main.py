# estate/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .db import engine
from .models.base import Base
from .utils.log import get_logger

from .routers import (
    listings as listings_router,
    admin_listings as admin_listings_router,
    manager as manager_router,
    meta as meta_router,
)

log = get_logger(__name__)

app = FastAPI(title="Estate Listings")

# --- CORS ---
allowed_origins = (
    [o.strip() for o in settings.ALLOWED_ORIGINS.split(",")]
    if getattr(settings, "ALLOWED_ORIGINS", None)
    else ["*"]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Routers ---
app.include_router(meta_router.router)
app.include_router(manager_router.router)       # /api/listing/manager/...
app.include_router(admin_listings_router.router)
app.include_router(listings_router.router)


# --- DB init ---
@app.on_event("startup")
def on_startup():
    Base.metadata.create_all(bind=engine)
    log.info("tables ready")
