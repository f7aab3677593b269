from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from tenant_admin.core.config import settings
from tenant_admin.core.http_hardening import install_http_hardening
from tenant_admin.core.log_config import configure_logging
from tenant_admin.api import account, auth, broadcasting, notifications, web
from tenant_admin.api.admin.router import router as admin_router
from tenant_admin.services.datatable.registry import validate_registries
from tenant_admin.services.datatable.tables import all_tables
from tenant_admin.services.notifications.observers import register_notification_observers


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    # misconfigured registries or tables must stop startup
    validate_registries()
    all_tables()
    register_notification_observers()
    yield


app = FastAPI(title=settings.APP_NAME, version="0.1.0", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_http_hardening(app)

app.include_router(auth.router, prefix="/api/auth", tags=["Auth"])
app.include_router(account.router, prefix="/api/account", tags=["Account"])
app.include_router(notifications.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(admin_router, prefix="/api/admin")
app.include_router(broadcasting.router, prefix="/broadcasting", tags=["Broadcasting"])
app.include_router(web.router, tags=["Web"])

@app.get("/", include_in_schema=False)
def landing():
    return JSONResponse({"service": settings.APP_NAME, "status": "ok"})

@app.get("/health")
def health():
    return {"status": "ok"}
