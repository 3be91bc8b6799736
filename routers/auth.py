from fastapi import APIRouter, HTTPException, Depends
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel
from core.access_scope import DataStoreError
from core.scope_registry import ScopeRegistry
from core.supabase_client import get_supabase_client
from dependencies.auth import get_current_user, CurrentUser
from dependencies.scope import get_scope_registry
from core.logging_config import logger


router = APIRouter(
    prefix="/auth",
    tags=["Auth"],
)


# ============================================================
# MODELS
# ============================================================
class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


# ============================================================
# LOGIN (SUPABASE AUTH)
# ============================================================
@router.post("/login", response_model=TokenResponse, summary="Authenticate user")
async def login(
    payload: LoginRequest,
    registry: ScopeRegistry = Depends(get_scope_registry),
):
    email = payload.email.strip().lower()

    client = get_supabase_client()
    if not client:
        raise HTTPException(500, "Supabase client not configured")

    try:
        response = await run_in_threadpool(
            client.auth.sign_in_with_password,
            {"email": email, "password": payload.password},
        )
    except Exception as e:
        # Don't expose details to the caller
        logger.warning(f"Login attempt failed for {email}: {type(e).__name__}")
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not response.session or not response.session.access_token:
        raise HTTPException(401, "Invalid email or password")

    # Sign-in starts the principal's scope session
    user = getattr(response, "user", None)
    if user is not None and user.id:
        resolver = registry.for_principal(user.id)
        try:
            await resolver.resolve(user.id)
        except DataStoreError as e:
            # Scoped views report the error until /scope/refresh succeeds
            logger.warning(f"Scope not resolved at login for {user.id}: {e}")

    return TokenResponse(access_token=response.session.access_token)


# ============================================================
# LOGOUT: ends the scope session
# ============================================================
@router.post("/logout", summary="End the session's building scope")
def logout(
    current_user: CurrentUser = Depends(get_current_user),
    registry: ScopeRegistry = Depends(get_scope_registry),
):
    registry.discard(current_user.id)
    return {"success": True}


# ============================================================
# CURRENT USER
# ============================================================
@router.get("/me", response_model=CurrentUser, summary="Current authenticated user")
def read_me(current_user: CurrentUser = Depends(get_current_user)):
    return current_user
