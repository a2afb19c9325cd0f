import logging

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

# Imports de l'application
from app.api.v1.api import api_router
from app.core.config import settings
from app.core.permissions import Role
from app.crud import user_crud
from app.db import base  # noqa: F401  (registers every model on Base.metadata)
from app.db.base_class import Base
from app.db.session import SessionLocal, async_engine

# --- Configuration du logging ---
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# --- Initialisation de l'application FastAPI ---
app = FastAPI(
    title="CourseHub API",
    openapi_url="/api/v1/openapi.json",
)


def _sanitize_origin(origin: str | None) -> str | None:
    if not origin:
        return None
    value = origin.strip()
    if not value:
        return None
    if not value.startswith("http"):
        value = f"https://{value}"
    return value.rstrip("/")


def _build_cors_origins() -> list[str]:
    origins = sorted(
        {origin for origin in (_sanitize_origin(o) for o in settings.BACKEND_CORS_ORIGINS) if origin}
    )
    logger.info("CORS origins configurés: %s", origins)
    return origins


# --- Configuration des Middlewares ---
# Credentials are allowed so the browser sends the refresh cookie.
app.add_middleware(
    CORSMiddleware,
    allow_origins=_build_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["Authorization", "Content-Type", "X-Access-Token"],
)

app.include_router(api_router, prefix="/api/v1")


def ensure_default_admin() -> None:
    """Crée l'administrateur configuré par DEFAULT_ADMIN_EMAIL s'il n'existe pas."""

    email = settings.DEFAULT_ADMIN_EMAIL
    password = settings.DEFAULT_ADMIN_PASSWORD
    if not email or not password:
        return

    with SessionLocal() as session:
        if user_crud.get_user_by_email(session, email) is not None:
            logger.info("Administrateur par défaut déjà présent.")
            return

        logger.info("Création de l'administrateur par défaut '%s'.", email)
        user_crud.create_user(session, name="Administrator", email=email, password=password, role=Role.ADMIN)
        logger.info("✅ Administrateur par défaut créé.")


# --- Événement de Démarrage ---
@app.on_event("startup")
async def startup():
    logger.info("Vérification et création des tables de la base de données...")
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("✅ Les tables de la base de données sont prêtes.")

    # Requête synchrone + hachage bcrypt : hors de la boucle d'événements.
    await run_in_threadpool(ensure_default_admin)


# --- Route Racine ---
@app.get("/")
def read_root():
    return {"message": "Welcome to CourseHub API!"}
