from fastapi import APIRouter, Depends, status

from toolchat.api.deps import get_assembler
from toolchat.schemas.chat import ChatRequest, ChatResponse
from toolchat.services.chat_service import ConversationAssembler

router = APIRouter()


@router.post(
    "/chat",
    response_model=ChatResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
)
async def chat(
    request: ChatRequest,
    assembler: ConversationAssembler = Depends(get_assembler),
):
    """
    Send a message and get the assistant's answer.

    - **message**: The user's message
    - **conversationId**: Existing conversation (a new one is created if omitted)
    - **systemPromptId**: Overrides the conversation's system prompt for this turn
    - **useTool**: Offer the conversation's enabled tools to the model
    """
    return await assembler.submit_turn(request)
