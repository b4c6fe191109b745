from contextlib import asynccontextmanager
import logging
import secrets

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
import uvicorn

from wallet_auth.api.endpoints import admin, auth, health
from wallet_auth.core.config import settings
from wallet_auth.core.exceptions import WalletAuthError
from wallet_auth.core.roles import RoleResolver, parse_role
from wallet_auth.db.session import SessionLocal, init_db
from wallet_auth.services.admin_wallets import (
    AdminWalletRepository,
    load_admin_wallets_file,
    seed_admin_wallets,
)
from wallet_auth.services.auth_service import build_auth_service
from wallet_auth.services.wallet_users import SqlUserDirectory

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    db = SessionLocal()
    try:
        # seed wallets missing from the allow-list table, then load it into the resolver
        if settings.ADMIN_WALLETS_FILE:
            seed_admin_wallets(db, load_admin_wallets_file(settings.ADMIN_WALLETS_FILE))
        resolver = RoleResolver(
            AdminWalletRepository(db).list_entries(),
            default_role=parse_role(settings.DEFAULT_ROLE),
        )
    finally:
        db.close()

    app.state.auth_service = build_auth_service(
        resolver=resolver,
        user_directory=SqlUserDirectory(SessionLocal),
    )
    logger.info("%s auth service ready (challenge backend: %s)", settings.PROJECT_NAME, settings.CHALLENGE_BACKEND)
    yield


# Define the FastAPI application instance
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WalletAuthError)
async def wallet_auth_error_handler(request: Request, exc: WalletAuthError) -> JSONResponse:
    # the public message is generic per category, exc.reason stays in the logs
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.public_message, "code": exc.code},
        headers=headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "code": "VALIDATION_ERROR", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


security = HTTPBasic()
def doc_auth(credentials: HTTPBasicCredentials = Depends(security)):
    correct_password = bool(settings.DOC_PASSWORD) and secrets.compare_digest(
        credentials.password.encode(), settings.DOC_PASSWORD.encode()
    )
    if not (correct_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect password",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username

@app.get("/docs", include_in_schema=False)
async def get_swagger_documentation(username: str = Depends(doc_auth)):
    return get_swagger_ui_html(openapi_url="/openapi.json", title="docs")

@app.get("/redoc", include_in_schema=False)
async def get_redoc_documentation(username: str = Depends(doc_auth)):
    return get_redoc_html(openapi_url="/openapi.json", title="docs")

@app.get("/openapi.json", include_in_schema=False)
async def openapi(username: str = Depends(doc_auth)):
    return get_openapi(title=app.title, version=app.version, routes=app.routes)


# Include your API routers
app.include_router(health.router)
app.include_router(auth.router, prefix="/auth")
app.include_router(admin.router, prefix="/admin")


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        ssl_keyfile=settings.SSL_KEY,
        ssl_certfile=settings.SSL_CERT,
        reload=settings.DEBUG
    )
