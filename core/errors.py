# core/errors.py

from fastapi import HTTPException

from core.access_scope import ScopeError


def extract_supabase_error(error: Exception) -> str:
    """
    Safely extract readable details from Supabase Python client errors.
    Handles:
      • PostgREST errors (APIError carries .message)
      • GoTrue (Auth) errors
      • Generic Python exceptions
    """

    # Case 1: errors exposing .message
    message = getattr(error, "message", None)
    if message:
        return str(message)

    # Case 2: errors with args (common)
    if getattr(error, "args", None):
        return str(error.args[0])

    # Case 3: Plain string fallback
    return str(error) or "Unknown Supabase error"


def handle_supabase_error(error: Exception, operation: str = "Database operation", status_code: int = 500) -> HTTPException:
    """
    Handle Supabase errors with consistent formatting.
    Returns HTTPException (doesn't raise) so caller can customize or re-raise.

    Args:
        error: The exception that occurred
        operation: Description of what operation failed (e.g., "Failed to fetch payments")
        status_code: HTTP status code (default 500)
    """
    from core.logging_config import logger

    # Scope lookups that fail mid-request answer 503
    if isinstance(error, ScopeError):
        logger.error(f"{operation}: {error}")
        return scope_http_error(error)

    error_detail = extract_supabase_error(error)
    logger.error(f"{operation}: {error_detail}")

    error_lower = error_detail.lower()
    if "duplicate" in error_lower or "unique" in error_lower:
        return HTTPException(status_code=400, detail=f"{operation}: Record already exists")
    elif "foreign key" in error_lower:
        return HTTPException(status_code=400, detail=f"{operation}: Invalid reference")
    elif "not found" in error_lower or "does not exist" in error_lower:
        return HTTPException(status_code=404, detail=f"{operation}: Resource not found")
    else:
        return HTTPException(status_code=status_code, detail=f"{operation} failed")


def scope_http_error(error: Exception) -> HTTPException:
    """
    Building scope could not be resolved. Views report the failure
    instead of serving unscoped or stale rows.
    """
    return HTTPException(
        status_code=503,
        detail=f"Unable to load building access: {error}",
    )
