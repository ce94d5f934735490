"""FastAPI dependency injection functions."""

import base64
import binascii
import json
import logging
from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request

from .config import Settings, get_settings
from .memory import ConversationManager
from .schemas import UserInfo

logger = logging.getLogger(__name__)


async def get_conversation_manager(request: Request) -> ConversationManager:
    """Get the ConversationManager from app state."""
    return request.app.state.conversation_manager


def _display_name_from_principal(encoded: str) -> str:
    """Read the 'name' claim from the base64 Easy Auth principal header."""
    try:
        decoded_principal = json.loads(base64.b64decode(encoded).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug(f"Unreadable client principal header: {e}")
        return "Unknown user"

    for claim in decoded_principal.get("claims", []):
        if claim.get("typ") == "name":
            return claim.get("val") or "Unknown user"
    return "Unknown user"


async def get_current_user(
    settings: Annotated[Settings, Depends(get_settings)],
    x_ms_client_principal_id: Annotated[str | None, Header()] = None,
    x_ms_client_principal_name: Annotated[str | None, Header()] = None,
    x_ms_client_principal: Annotated[str | None, Header()] = None,
) -> UserInfo:
    """Extract user information from Azure Easy Auth SSO headers.

    - local: Use test credentials from settings
    - easyauth: Use SSO headers injected by Azure App Service

    Raises:
        HTTPException: 401 if no principal ID is present in easyauth mode
    """
    if settings.auth_mode == "local":
        return UserInfo(
            user_id=settings.local_test_client_id,
            user_name=settings.local_test_username,
            principal_name=None,
            is_authenticated=True,
            mode="local",
        )

    if not x_ms_client_principal_id:
        raise HTTPException(status_code=401, detail="Not authenticated")

    display_name = "Unknown user"
    if x_ms_client_principal:
        display_name = _display_name_from_principal(x_ms_client_principal)

    return UserInfo(
        user_id=x_ms_client_principal_id,
        user_name=display_name,
        principal_name=x_ms_client_principal_name,
        is_authenticated=bool(x_ms_client_principal),
        mode=settings.auth_mode,
    )


# Type aliases for dependency injection
ConversationManagerDep = Annotated[ConversationManager, Depends(get_conversation_manager)]
CurrentUserDep = Annotated[UserInfo, Depends(get_current_user)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
