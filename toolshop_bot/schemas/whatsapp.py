"""
WhatsApp and Quote Schemas for Toolshop Bot
===========================================

Request and response models for the WhatsApp endpoints (status, generic
send, quote send, status notifications) and for quote message drafting.

Usage:
------
    from toolshop_bot.schemas.whatsapp import DispatchResponse

    return DispatchResponse.from_result(result)
"""

from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class WhatsAppStatusOut(BaseModel):
    ready: bool
    transport: str
    pending_inbound: int


class WhatsAppSendRequest(BaseModel):
    """
    Free-form message for every mobile number of the order's client.

    Either ``message`` or ``media_url`` must be given. With a media URL the
    message is used as the attachment caption.
    """
    order_id: int
    message: Optional[str] = None
    media_url: Optional[str] = None
    filename: Optional[str] = None

    @model_validator(mode="after")
    def message_or_media(self):
        if not (self.message and self.message.strip()) and not self.media_url:
            raise ValueError("message or media_url is required")
        return self


class DispatchResponse(BaseModel):
    success: bool = True
    order_id: int
    recipients: List[str] = Field(default_factory=list)
    recipient_count: int = 0
    status: str = "sent"

    @classmethod
    def from_result(cls, result) -> "DispatchResponse":
        return cls(
            order_id=result.order_id,
            recipients=list(result.recipients),
            recipient_count=result.recipient_count,
        )


class QuoteTotalsOut(BaseModel):
    subtotal: float
    tax: float
    total: float


class QuoteDraftResponse(BaseModel):
    success: bool = True
    order_id: int
    message: str
    totals: QuoteTotalsOut
    machines_count: int
    generated_by_ai: bool
