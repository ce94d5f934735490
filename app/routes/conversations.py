"""Conversation memory diagnostics route."""

from fastapi import APIRouter, HTTPException

from ..dependencies import ConversationManagerDep, CurrentUserDep
from ..schemas import MemoryMessageSchema, MemoryResponse

router = APIRouter()


@router.get("/conversations/{conversation_id}/memory", response_model=MemoryResponse)
async def get_conversation_memory(
    conversation_id: str,
    manager: ConversationManagerDep,
    current_user: CurrentUserDep,
) -> MemoryResponse:
    """Show the memory the next turn of a conversation would be built from.

    Loading may summarize synchronously if the conversation just crossed
    the summarization threshold.

    Raises:
        HTTPException: 404 if conversation not found
    """
    conversation = await manager.store.get_conversation(conversation_id, current_user.user_id)
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")

    memory = await manager.loader.load_memory(conversation_id, current_user.user_id)

    return MemoryResponse(
        conversation_id=conversation_id,
        summary=memory.summary,
        older_message_count=memory.older_message_count,
        total_message_count=memory.total_message_count,
        recent_messages=[
            MemoryMessageSchema(role=m.role, content=m.content)
            for m in memory.recent_messages
        ],
    )
