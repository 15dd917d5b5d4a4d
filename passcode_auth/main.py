from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from passcode_auth.config import settings
from passcode_auth.database import init_db
from passcode_auth.errors import StorageFailure
from passcode_auth.logging_config import setup_logging
from passcode_auth.routers import auth

app = FastAPI(title="Passcode Auth")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router, prefix="/api")
app.include_router(auth.router)  # Compatibility for clients calling /auth/* without /api.


@app.exception_handler(StorageFailure)
def storage_failure_handler(request: Request, exc: StorageFailure) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": {"error": exc.kind, "message": exc.default_message}},
    )


@app.on_event("startup")
def startup() -> None:
    setup_logging()
    init_db()


@app.get("/")
def root():
    return {"status": "Backend running"}
