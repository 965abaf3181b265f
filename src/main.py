import logging
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from config import get_settings
from create_tables import create_tables
from database import SessionLocal

from modules.auth.services.auth_service import AuthService
from modules.auth.controllers.auth_controller import router as auth_router
from modules.documents.controllers.document_controller import router as document_router
from modules.signing.controllers.signature_controller import router as signature_router
from modules.storage.controllers.file_controller import router as file_router

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

DEMO_USER = ("Demo Sender", "sender@example.com", "sender123")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup logic ---
    logger.info("Starting signlink (%s)", settings.env)
    create_tables()
    if settings.seed_demo_user:
        _create_demo_user()
    yield
    # --- Shutdown logic ---
    logger.info("Application stopped")


def _create_demo_user():
    """Crea el usuario de prueba si no existe."""
    name, email, password = DEMO_USER
    with SessionLocal() as session:
        AuthService.ensure_user(session, name, email, password)
    logger.info("Demo user available: %s / %s", email, password)


app = FastAPI(
    title="signlink",
    description="API for placing signature fields on PDFs and collecting signatures through public links",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Origin"],
    # the editor reads the download name and the placeholder flag
    expose_headers=["Content-Disposition", "X-Render-Placeholder"],
    max_age=86400,
)

# Routers
app.include_router(auth_router)
app.include_router(document_router)
app.include_router(signature_router)
app.include_router(file_router)

if __name__ == "__main__":
    uvicorn.run("main:app", host=settings.api_host, port=settings.api_port, reload=settings.env == "development")
