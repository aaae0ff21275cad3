"""HTTP access to one-to-one chat history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status

from devlink.domain.chat import schemas
from devlink.domain.identity.models import UserIdentity
from devlink.infra.auth import get_current_identity
from devlink.obs import metrics as obs_metrics

router = APIRouter(prefix="/chat", tags=["chat"])


@router.get("/{target_user_id}/messages")
async def list_messages_endpoint(
	target_user_id: str,
	request: Request,
	identity: UserIdentity = Depends(get_current_identity),
) -> dict:
	target_user_id = target_user_id.strip()
	if not target_user_id or target_user_id == identity.id:
		raise HTTPException(status.HTTP_400_BAD_REQUEST, detail="self_chat")
	store = request.app.state.chat.store
	try:
		messages = await store.load_history(identity.id, target_user_id)
	except Exception:
		obs_metrics.inc_chat_history("failed")
		raise
	obs_metrics.inc_chat_history("ok")
	response = schemas.HistoryResponse(target_user_id=target_user_id, messages=schemas.history_to_wire(messages))
	return response.model_dump(mode="json", by_alias=True)
