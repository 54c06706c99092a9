import json
from typing import Any, Dict

from fastapi import APIRouter, Header, HTTPException, Request, status

from jrdev.services.github.github_webhook import handle_github_event, verify_signature

router = APIRouter(prefix="/webhook", tags=["Webhooks"])


@router.post("/github", status_code=status.HTTP_200_OK)
async def github_webhook(
    request: Request,
    x_hub_signature_256: str = Header(None),
    x_github_event: str = Header(None),
    x_github_delivery: str = Header(None),
):
    """Handle GitHub webhook events."""
    payload_bytes = await request.body()
    verify_signature(x_hub_signature_256, payload_bytes)
    try:
        payload: Dict[str, Any] = json.loads(payload_bytes)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Webhook payload must be a JSON object"
        )
    return handle_github_event(x_github_event, payload, delivery_id=x_github_delivery)
