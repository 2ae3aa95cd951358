from __future__ import annotations

from contextlib import asynccontextmanager
import logging

from devkit.config import ServiceSettings, load_settings
from devkit.db import is_postgres_dsn
from devkit.observability import configure_logging, configure_otel, configure_health_access_log_filter
from devkit.redis import create_redis_client
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from portal_auth.errors import DuplicateUserError, LegacyDirectoryError, LoginDenied
from portal_auth.legacy_client import LegacyDirectoryClient
from portal_auth.legacy_directory import InMemoryLegacyDirectory, LegacyDirectory, SupabaseLegacyDirectory
from portal_auth.login import LoginService
from portal_auth.migration import MigrationEngine
from portal_auth.models import LocalIdentity, SessionUser
from portal_auth.response import error_response
from portal_auth.schemas import BulkMigrateRequest, LoginRequest, MigrateUserRequest, SignupRequest
from portal_auth.sessions import SessionStore, create_session_store
from portal_auth.signup import SignupService
from portal_auth.store import DatabaseLocalStore, InMemoryLocalStore, LocalStore
from shared.security import ADMIN_ROLES, ensure_roles

logger = logging.getLogger(__name__)


def _build_local_store(settings: ServiceSettings) -> LocalStore:
    if settings.DATABASE_URL and is_postgres_dsn(settings.DATABASE_URL):
        return DatabaseLocalStore(settings.DATABASE_URL)
    return InMemoryLocalStore()


def _build_legacy_directory(settings: ServiceSettings) -> LegacyDirectory:
    if settings.legacy_directory_configured and settings.LEGACY_DIRECTORY_URL:
        return SupabaseLegacyDirectory(
            settings.LEGACY_DIRECTORY_URL,
            settings.LEGACY_DIRECTORY_SERVICE_KEY,
            accounts_table=settings.LEGACY_ACCOUNTS_TABLE,
            details_table=settings.LEGACY_DETAILS_TABLE,
            timeout_seconds=settings.LEGACY_DIRECTORY_TIMEOUT_SECONDS,
        )
    logger.warning("legacy_directory_not_configured", extra={"component": "app"})
    return InMemoryLegacyDirectory()


def _migrated_user_summary(user: LocalIdentity) -> dict:
    return {
        "id": user.user_id,
        "email": user.email,
        "name": user.name,
        "legacyUserId": user.legacy_user_id,
        "migrationDate": user.migration_date.isoformat() if user.migration_date else None,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
    }


def _profile_payload(user: LocalIdentity) -> dict:
    return {
        **SessionUser.from_identity(user).to_dict(),
        "sex": str(user.sex),
        "isEmailVerified": user.is_email_verified,
        "migratedFromSupabase": user.migrated_from_supabase,
        "legacyUserId": user.legacy_user_id,
        "migrationDate": user.migration_date.isoformat() if user.migration_date else None,
        "createdAt": user.created_at.isoformat() if user.created_at else None,
        "accounts": [
            {"id": credential.credential_id, "email": credential.email, "status": str(credential.status)}
            for credential in user.credentials
        ],
    }


def create_app(
    *,
    settings: ServiceSettings | None = None,
    local_store: LocalStore | None = None,
    legacy_directory: LegacyDirectory | None = None,
    session_store: SessionStore | None = None,
) -> FastAPI:
    settings = settings or load_settings("portal-auth")
    configure_logging(settings.LOG_LEVEL)
    configure_otel(settings.SERVICE_NAME)

    store = local_store or _build_local_store(settings)
    legacy_client = LegacyDirectoryClient(legacy_directory or _build_legacy_directory(settings))
    sessions = session_store or create_session_store(
        create_redis_client(settings.REDIS_URL),
        settings.SESSION_TTL_SECONDS,
    )
    migration = MigrationEngine(store=store, legacy=legacy_client, hash_rounds=settings.PASSWORD_HASH_ROUNDS)
    login_service = LoginService(
        store=store,
        legacy=legacy_client,
        migration=migration,
        hash_rounds=settings.PASSWORD_HASH_ROUNDS,
    )
    signup_service = SignupService(store=store, hash_rounds=settings.PASSWORD_HASH_ROUNDS)
    cookie_name = settings.SESSION_COOKIE_NAME

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        await store.ensure_ready()
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(title="Maritime Portal Auth", version="0.1.0", lifespan=lifespan)
    configure_health_access_log_filter()

    @app.exception_handler(LoginDenied)
    async def handle_login_denied(_: Request, exc: LoginDenied) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(LegacyDirectoryError)
    async def handle_legacy_directory_error(_: Request, exc: LegacyDirectoryError) -> JSONResponse:
        logger.error("legacy_directory_unavailable", exc_info=exc, extra={"component": "app"})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response("Authentication service error", "authentication_service_error"),
        )

    @app.exception_handler(HTTPException)
    async def handle_http_exception(_: Request, exc: HTTPException) -> JSONResponse:
        if isinstance(exc.detail, dict):
            payload = exc.detail
        else:
            payload = error_response(str(exc.detail), "http_error")
        return JSONResponse(status_code=exc.status_code, content=payload)

    async def current_session_user(request: Request) -> SessionUser | None:
        session_id = request.cookies.get(cookie_name)
        if not session_id:
            return None
        return await sessions.get(session_id)

    async def require_admin(request: Request) -> SessionUser:
        user = await current_session_user(request)
        if user is None or not ensure_roles(user.role, ADMIN_ROLES):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=error_response("Admin access required", "forbidden"),
            )
        return user

    @app.get("/healthz")
    async def healthz() -> dict:
        return {"status": "ok"}

    @app.get("/readyz")
    async def readyz() -> dict:
        return {"status": "ready"}

    @app.post("/auth/login")
    async def login(body: LoginRequest, response: Response) -> dict:
        result = await login_service.login(body.email, body.password)
        session_id = await sessions.create(result.user)
        response.set_cookie(
            cookie_name,
            session_id,
            max_age=settings.SESSION_TTL_SECONDS,
            httponly=True,
            secure=settings.SESSION_COOKIE_SECURE,
            samesite="lax",
        )
        payload: dict = {
            "user": result.user.to_dict(),
            "isLocalUser": result.is_local_user,
            "message": "Login successful",
        }
        if result.migrated:
            payload["migrationInfo"] = {"migrated": True, "message": result.migration_message}
        return payload

    @app.get("/auth/session")
    async def check_session(request: Request) -> dict:
        user = await current_session_user(request)
        return {"user": user.to_dict() if user else None}

    @app.post("/auth/logout")
    async def logout(request: Request, response: Response) -> dict:
        session_id = request.cookies.get(cookie_name)
        if not session_id:
            return {"message": "No session to destroy"}
        await sessions.destroy(session_id)
        response.delete_cookie(cookie_name)
        return {"message": "Logged out successfully"}

    @app.post("/auth/signup", status_code=status.HTTP_201_CREATED)
    async def signup(body: SignupRequest) -> dict:
        try:
            user = await signup_service.sign_up(body.email, body.password)
        except DuplicateUserError as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=error_response("Email already registered", "duplicate_user"),
            ) from exc
        return {"message": "Signup successful.", "user": SessionUser.from_identity(user).to_dict()}

    @app.get("/auth/profile/{user_id}")
    async def fetch_profile(user_id: str, request: Request) -> dict:
        viewer = await current_session_user(request)
        if viewer is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=error_response("Not authenticated", "unauthenticated"),
            )
        if viewer.id != user_id and not ensure_roles(viewer.role, ADMIN_ROLES):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=error_response("Access denied", "forbidden"),
            )
        user = await store.find_user_by_id(user_id)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=error_response("User not found", "not_found"),
            )
        return _profile_payload(user)

    admin = APIRouter(prefix="/migration", dependencies=[Depends(require_admin)])

    @admin.get("/status/{email}")
    async def migration_status(email: str) -> dict:
        migration_state = await migration.get_migration_status(email)
        return {"email": email, **migration_state.to_dict()}

    @admin.get("/needs-migration/{email}")
    async def needs_migration(email: str) -> dict:
        return {"email": email, "needsMigration": await migration.needs_migration(email)}

    @admin.post("/migrate-user")
    async def migrate_user(body: MigrateUserRequest) -> dict:
        if not body.email or not body.password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=error_response("Email and password are required", "invalid_request"),
            )
        legacy = await legacy_client.authenticate(body.email, body.password)
        if legacy.service_failed:
            raise LegacyDirectoryError("legacy directory unavailable during manual migration")
        if not legacy.success or legacy.identity is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=error_response("Invalid legacy directory credentials", "invalid_credentials"),
            )
        result = await migration.migrate(legacy.identity, legacy.profile)
        if not result.success or result.user is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail={"success": False, "error": result.error, "message": result.message},
            )
        return {
            "success": True,
            "message": result.message,
            "user": SessionUser.from_identity(result.user).to_dict(),
        }

    @admin.post("/bulk-migrate")
    async def bulk_migrate(body: BulkMigrateRequest) -> dict:
        if not body.emails:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=error_response("Emails array is required", "invalid_request"),
            )
        if len(body.emails) > settings.BULK_MIGRATION_LIMIT:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=error_response(
                    f"Maximum {settings.BULK_MIGRATION_LIMIT} emails allowed per bulk operation",
                    "invalid_request",
                ),
            )
        report = await migration.bulk_migrate(body.emails)
        return {
            "success": True,
            "total": report.total,
            "successful": report.successful,
            "failed": report.failed,
            "results": [result.to_dict() for result in report.results],
        }

    @admin.get("/migrated-users")
    async def migrated_users() -> dict:
        users = await store.list_migrated_users()
        return {
            "success": True,
            "count": len(users),
            "users": [_migrated_user_summary(user) for user in users],
        }

    @admin.get("/test-connection")
    async def test_connection() -> dict:
        try:
            await legacy_client.ping()
        except LegacyDirectoryError as exc:
            logger.error("legacy_directory_ping_failed", exc_info=exc, extra={"component": "app"})
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={"success": False, "error": "Failed to connect to legacy directory"},
            ) from exc
        return {
            "success": True,
            "message": "Successfully connected to legacy directory",
            "connectionTest": "passed",
        }

    app.include_router(admin)
    return app


app = create_app()
