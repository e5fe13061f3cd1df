# dinebill/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dinebill.middleware import RequestIdMiddleware
from dinebill.db import Base, engine
from dinebill.log import configure_logging
from dinebill.realtime.kds import KdsBus
from dinebill.util.errors import install_error_handlers
import dinebill.models  # noqa: F401  (registers tables)

from dinebill.routers import auth, billing, kds, menu, orders, public, tables
from dinebill.routers import settings as settings_router

logger = logging.getLogger("dinebill")

app = FastAPI(title="dinebill API", version="0.1.0")

@app.on_event("startup")
def startup():
    configure_logging()
    Base.metadata.create_all(bind=engine)
    # one bus per process, handed to handlers through get_bus
    app.state.kds_bus = KdsBus()
    logger.info("kitchen bus ready")

@app.on_event("shutdown")
def shutdown():
    bus = getattr(app.state, "kds_bus", None)
    if bus is not None:
        bus.close()

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_error_handlers(app)

app.include_router(auth.router)
app.include_router(settings_router.router)
app.include_router(tables.router)
app.include_router(menu.router)
app.include_router(orders.router)
app.include_router(billing.router)
app.include_router(kds.router)
app.include_router(public.router)

@app.get("/healthz")
def healthz():
    return {"ok": True}
