"""
WhatsApp Cloud API client (template messages only).
"""

from typing import Any, Optional

import httpx
import structlog

from core.exceptions import ArtVoteError

logger = structlog.get_logger(__name__)


def build_template_message(
    to: str,
    template_name: str,
    body_params: list[str],
    language: str = "it",
    header_image_url: Optional[str] = None,
) -> dict[str, Any]:
    """Build a ``type: template`` message; at most 3 body parameters are sent."""
    components: list[dict[str, Any]] = []
    if header_image_url:
        components.append(
            {"type": "header", "parameters": [{"type": "image", "image": {"link": header_image_url}}]}
        )
    components.append(
        {
            "type": "body",
            "parameters": [{"type": "text", "text": p or "-"} for p in body_params[:3]],
        }
    )
    return {
        "messaging_product": "whatsapp",
        "to": to,
        "type": "template",
        "template": {
            "name": template_name,
            "language": {"code": language},
            "components": components,
        },
    }


class WhatsAppClient:
    """Send template messages from one business phone number."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        phone_number_id: str,
        graph_version: str = "v21.0",
        base_url: str = "https://graph.facebook.com",
    ):
        self.http_client = http_client
        self.messages_url = f"{base_url.rstrip('/')}/{graph_version}/{phone_number_id}/messages"

    async def send_template(self, token: str, message: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self.http_client.post(
                self.messages_url,
                json=message,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise ArtVoteError(
                f"WhatsApp request failed: {e}", context={"step": "whatsapp_send"}
            ) from e

        if not response.is_success:
            raise ArtVoteError(
                f"WhatsApp send failed: {response.status_code} {response.text}",
                context={"step": "whatsapp_send"},
            )
        logger.info("whatsapp_message_sent", template=message.get("template", {}).get("name"))
        return response.json()
