"""
Telegram webhook schemas.

Only the fields the vote callback needs are modelled; everything else in
an update is kept as extra data.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int
    username: Optional[str] = None


class CallbackQuery(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    from_user: TelegramUser = Field(..., alias="from")
    data: Optional[str] = None


class TelegramUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    update_id: int
    callback_query: Optional[CallbackQuery] = None


class WebhookResponse(BaseModel):
    ok: bool = True
    handled: bool = False
    status: Optional[str] = None
