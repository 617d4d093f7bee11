import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from edulink_module import init_edulink_module, router as edulink_router
from edulink_module.config import settings
from edulink_module.middleware import register_error_handlers

# Configure Logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Initializing EduLink module...")
    init_edulink_module()
    logger.info("EduLink module initialized.")
    yield
    logger.info("Shutting down...")


app = FastAPI(title="EduLink Reports API", lifespan=lifespan)

origins = [o.strip() for o in os.getenv("EDULINK_CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)
app.include_router(edulink_router)


@app.get("/api/health")
async def health_check():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    reload_enabled = os.getenv("BACKEND_RELOAD", "false").lower() == "true"
    backend_host = os.getenv("BACKEND_HOST", "127.0.0.1")
    backend_port = int(os.getenv("BACKEND_PORT", "8000"))
    uvicorn.run("main:app" if reload_enabled else app, host=backend_host, port=backend_port, reload=reload_enabled)
