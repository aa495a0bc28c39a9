from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
import logging
import os

from common.settings import ALLOWED_ORIGINS, APP_NAME, APP_VER, LOG_LEVEL, OUTPUT_DIR

from controllers.scripts_controller import router as scripts_router
from controllers.sessions_controller import router as sessions_router
from controllers.import_controller import router as import_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

APP_DESC = "Audit interview scripts: catalog, per-session progress, next-question selection and bulk text import."

app = FastAPI(title=APP_NAME, description=APP_DESC, version=APP_VER)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

os.makedirs(OUTPUT_DIR, exist_ok=True)
app.mount("/static", StaticFiles(directory=OUTPUT_DIR), name="static")


@app.get("/health")
def health():
    return {"ok": True, "service": APP_NAME, "version": APP_VER}


@app.exception_handler(Exception)
async def unhandled_exc_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"ok": False, "code": "UNHANDLED_ERROR", "error": str(exc)},
    )


app.include_router(scripts_router, prefix="", tags=["scripts"])
app.include_router(sessions_router, prefix="", tags=["sessions"])
app.include_router(import_router, prefix="", tags=["import"])


@app.get("/")
def index():
    return {
        "ok": True,
        "message": "Audit Script Engine is running.",
        "endpoints": [
            "/scripts", "/scripts/{id}", "/scripts/{id}/duplicate", "/scripts/{id}/export", "/scripts/import", "/scripts/{id}/sections", "/sections/{id}/questions",
            "/sessions/{sid}/progress", "/sessions/{sid}/next", "/sessions/{sid}/coverage",
            "/scripts/{id}/import/preview", "/scripts/{id}/import/apply", "/health", "/static/<file>",
        ],
    }
