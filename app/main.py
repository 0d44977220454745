# app/main.py
import logging
import os

from dotenv import load_dotenv

# Cargar variables de entorno desde .env ANTES de cualquier otra cosa
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# SlowAPI (Rate Limiting)
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from .core.config import APP_ENV
from .core.users import auth_backend_jwt, fastapi_users
from .db.engine import create_db_and_tables
from .db.engine_sync import create_sync_db_and_tables
from .scheduler import automation_scheduler
from .schemas.user import UserCreate, UserRead

# Importaciones de API Routers
from .api import health
from .api.automation import main as automation_main_api
from .api.clients import main as clients_main_api
from .api.communications import main as communications_main_api
from .api.payments import main as payments_main_api
from .api.subscriptions import main as subscriptions_main_api
from .api.users import main as users_main_api

logger = logging.getLogger(__name__)

app = FastAPI(title="Subscriptions Backend", version="1.0.0")


# --- Startup / Shutdown ---
@app.on_event("startup")
async def on_startup():
    """Initialize database tables and the automation timer."""
    await create_db_and_tables()
    create_sync_db_and_tables()
    logger.info("✅ Database tables initialized")

    if APP_ENV == "test":
        logger.info("APP_ENV=test: no se inicia el scheduler.")
        return
    try:
        automation_scheduler.start()
    except Exception as e:
        # el API sigue disponible aunque el timer no arranque
        logger.error(f"❌ No se pudo iniciar el scheduler de automatización: {e}")


@app.on_event("shutdown")
def on_shutdown():
    automation_scheduler.stop()


# --- Configuración de SlowAPI ---
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[os.getenv("RATE_LIMIT", "120/minute")],
    enabled=os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true",
)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)


async def custom_rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(content={"error": f"Rate limit exceeded: {exc.detail}"}, status_code=429)


app.add_exception_handler(RateLimitExceeded, custom_rate_limit_handler)


# ============================================================================
# --- SEGURIDAD: CONFIGURACIÓN CORS ESTRICTA ---
# ============================================================================
allowed_origins_env = os.getenv("ALLOWED_ORIGINS", "http://localhost:5173")
origins = allowed_origins_env.split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# --- SEGURIDAD: CABECERAS DE SEGURIDAD HTTP ---
# ============================================================================
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


# ============================================================================
# --- ROUTERS INCLUSION ---
# ============================================================================

# 1. FastAPI Users Routers
app.include_router(
    fastapi_users.get_auth_router(auth_backend_jwt),
    prefix="/auth/jwt",
    tags=["Auth"],
)
app.include_router(
    fastapi_users.get_register_router(UserRead, UserCreate),
    prefix="/auth",
    tags=["Auth"],
)

# 2. Domain API Routers
app.include_router(health.router)
app.include_router(automation_main_api.router, prefix="/api", tags=["Automation"])
app.include_router(payments_main_api.router, prefix="/api", tags=["Payments"])
app.include_router(subscriptions_main_api.router, prefix="/api", tags=["Subscriptions"])
app.include_router(clients_main_api.router, prefix="/api", tags=["Clients"])
app.include_router(communications_main_api.router, prefix="/api", tags=["Communications"])
app.include_router(users_main_api.router, prefix="/api", tags=["Users"])
