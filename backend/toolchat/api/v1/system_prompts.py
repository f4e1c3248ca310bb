from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from toolchat.api.deps import get_storage, resolve_user_id
from toolchat.schemas.system_prompt import (
    SystemPromptCreate,
    SystemPromptEnvelope,
    SystemPromptListResponse,
    SystemPromptUpdate,
)
from toolchat.services.storage import ChatStorage

router = APIRouter()


@router.get("", response_model=SystemPromptListResponse)
async def list_system_prompts(
    user_id: Optional[int] = Query(None, alias="userId"),
    storage: ChatStorage = Depends(get_storage),
):
    prompts = await storage.list_system_prompts(resolve_user_id(user_id))
    return {"prompts": prompts}


@router.post("", response_model=SystemPromptEnvelope, status_code=status.HTTP_201_CREATED)
async def create_system_prompt(
    data: SystemPromptCreate,
    storage: ChatStorage = Depends(get_storage),
):
    """Create a prompt. With isDefault the user's previous default is cleared."""
    prompt = await storage.create_system_prompt(
        user_id=resolve_user_id(data.user_id),
        title=data.title,
        content=data.content,
        is_default=data.is_default,
    )
    return {"prompt": prompt}


@router.patch("/{prompt_id}", response_model=SystemPromptEnvelope)
async def update_system_prompt(
    prompt_id: int,
    data: SystemPromptUpdate,
    storage: ChatStorage = Depends(get_storage),
):
    prompt = await storage.update_system_prompt(
        prompt_id,
        title=data.title,
        content=data.content,
        is_default=data.is_default,
    )
    return {"prompt": prompt}


@router.delete("/{prompt_id}")
async def delete_system_prompt(
    prompt_id: int,
    storage: ChatStorage = Depends(get_storage),
):
    await storage.delete_system_prompt(prompt_id)
    return {"success": True}


@router.post("/{prompt_id}/set-default", response_model=SystemPromptEnvelope)
async def set_default_system_prompt(
    prompt_id: int,
    storage: ChatStorage = Depends(get_storage),
):
    prompt = await storage.set_default_system_prompt(prompt_id)
    return {"prompt": prompt}
