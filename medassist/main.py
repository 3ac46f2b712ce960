# medassist/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from medassist.api.routes import router as api_router
from medassist.config import get_settings
from medassist.db import engine
from medassist.errors import InvalidRequestError, MedAssistError
from medassist.services import init_db


settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(title="MedAssist API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)


@app.exception_handler(MedAssistError)
def handle_medassist_error(request: Request, exc: MedAssistError) -> JSONResponse:
    body = {"detail": exc.message}
    if isinstance(exc, InvalidRequestError) and exc.errors:
        body["errors"] = exc.errors
    if exc.status_code >= 500:
        logger.warning("%s %s -> %d: %s", request.method, request.url.path, exc.status_code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
def handle_bad_request_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed bodies are a plain 400, same as missing required values
    return JSONResponse(status_code=400, content={"detail": "Invalid request body"})


@app.on_event("startup")
def on_startup() -> None:
    init_db(engine)


@app.get("/")
def root():
    return {"message": "MedAssist API is running"}


app.include_router(api_router, prefix="/api")
