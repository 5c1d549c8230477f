from datetime import datetime

from pydantic import BaseModel, Field

from ridehail.ride import PaymentMethod, PaymentStatus


class Payment(BaseModel):
    """Payment for a completed ride, 1:1 with the ride."""

    payment_id: str
    ride_id: str
    payer_id: str
    payee_id: str
    amount: float = Field(ge=0)
    currency: str
    method: PaymentMethod
    status: PaymentStatus
    processor_intent_id: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def amount_minor_units(self) -> int:
        """Amount in the currency's smallest unit, as processors expect."""
        return round(self.amount * 100)
