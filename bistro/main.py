# bistro/main.py
import logging

from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bistro.config import settings
from bistro.db import Base, engine
from bistro.errors import PricingError
from bistro.middleware import RequestIdMiddleware
from bistro.realtime import NotificationHub
from bistro.services.dispatch import PrintDispatcher

import bistro.models  # noqa: F401  (registers tables on Base.metadata)
from bistro.routers import admin, auth, bills, customers, expenses, menu, orders, print as print_router
from bistro.routers import reports, tables, users
from bistro.routers import settings as settings_router

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("bistro")

app = FastAPI(title="Bistro API", version="1.0.0")


@app.on_event("startup")
def init_app():
    Base.metadata.create_all(bind=engine)
    app.state.hub = NotificationHub()
    app.state.dispatcher = PrintDispatcher(timeout=settings.PRINTER_TIMEOUT_S, width=settings.RECEIPT_WIDTH)
    logger.info("bistro started (env=%s)", settings.APP_ENV)


@app.exception_handler(PricingError)
async def pricing_error_handler(request: Request, exc: PricingError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(admin.router)
app.include_router(tables.router)
app.include_router(menu.router)
app.include_router(orders.router)
app.include_router(bills.router)
app.include_router(print_router.router)
app.include_router(customers.router)
app.include_router(expenses.router)
app.include_router(settings_router.router)
app.include_router(reports.router)


@app.websocket("/ws")
async def notifications(ws: WebSocket):
    hub: NotificationHub = app.state.hub
    await hub.connect(ws)
    try:
        while True:
            msg = await ws.receive_json()
            if isinstance(msg, dict) and msg.get("event") == "joinRole" and isinstance(msg.get("data"), str):
                hub.join(ws, msg["data"])
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(ws)


@app.get("/healthz")
def healthz():
    return {"ok": True}
