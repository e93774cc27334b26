"""Authentication handlers for photovault application."""

from typing import Any

import structlog

from photovault.error_handling import handle_error
from photovault.models.user import Session
from photovault.services.auth import get_identity_service

logger = structlog.get_logger()


def sign_in(email: str, password: str) -> dict[str, Any]:
    """
    Sign in with email and password.

    Returns:
        dict: ``success`` with ``session`` and ``message``, or ``error``
    """
    try:
        session = get_identity_service().sign_in(email, password)
    except Exception as e:
        error_info = handle_error(e, {"operation": "sign_in"})
        return {"success": False, "error": error_info.user_message, "code": error_info.code}

    logger.info("authentication_success", user_id=session.user_id)
    return {"success": True, "session": session, "message": "Login realizado com sucesso!"}


def sign_up(email: str, password: str) -> dict[str, Any]:
    """
    Register a new account. The user signs in separately afterwards.

    Returns:
        dict: ``success`` with ``user`` and ``message``, or ``error``
    """
    try:
        user = get_identity_service().sign_up(email, password)
    except Exception as e:
        error_info = handle_error(e, {"operation": "sign_up"})
        return {"success": False, "error": error_info.user_message, "code": error_info.code}

    return {"success": True, "user": user, "message": "Cadastro realizado! Verifique seu email para confirmar."}


def sign_out(session: Session | None) -> dict[str, Any]:
    """End the session, if any."""
    if session is not None:
        try:
            get_identity_service().sign_out(session)
        except Exception as e:
            error_info = handle_error(e, {"operation": "sign_out"})
            return {"success": False, "error": error_info.user_message, "code": error_info.code}

    logger.info("user_logout")
    return {"success": True, "message": "Você saiu da sua conta."}


def restore_session(session: Session | None) -> Session | None:
    """Re-validate a session kept by the front end; None once it has expired or been signed out."""
    if session is None or session.is_expired():
        return None
    return get_identity_service().get_session(session.access_token)
