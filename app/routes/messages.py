"""Chat turn API route."""

import logging

from fastapi import APIRouter, HTTPException

from ..dependencies import ConversationManagerDep, CurrentUserDep, SettingsDep
from ..exceptions import CompletionError, CompletionTimeoutError, ConversationNotFoundError
from ..schemas import SendMessageRequest, SendMessageResponse, UsageSchema

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/chat", response_model=SendMessageResponse)
async def send_message(
    body: SendMessageRequest,
    manager: ConversationManagerDep,
    current_user: CurrentUserDep,
    settings: SettingsDep,
) -> SendMessageResponse:
    """Answer a user message using conversation memory.

    Omitting ``conversation_id`` starts a new conversation. The reply is
    returned even when the turn could not be stored; ``memory_persisted``
    reports that case.

    Raises:
        HTTPException: 404 unknown conversation, 502 completion failure,
            504 completion timeout
    """
    try:
        result = await manager.handle_turn(
            user_id=current_user.user_id,
            conversation_id=body.conversation_id,
            user_text=body.message,
            system_prompt=body.system_prompt or settings.default_system_prompt,
            client_ref=body.client_ref,
        )
    except ConversationNotFoundError:
        raise HTTPException(status_code=404, detail="Conversation not found")
    except CompletionTimeoutError:
        raise HTTPException(status_code=504, detail="The assistant took too long to respond")
    except CompletionError as e:
        logger.error(f"Turn failed for user {current_user.user_id}: {e}")
        raise HTTPException(status_code=502, detail="Unable to generate a response")

    return SendMessageResponse(
        reply=result.reply,
        conversation_id=result.conversation_id,
        usage=UsageSchema(
            input_tokens=result.usage.input_tokens,
            output_tokens=result.usage.output_tokens,
        ),
        memory_persisted=result.memory_persisted,
    )
