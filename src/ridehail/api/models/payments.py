from pydantic import BaseModel, Field


class CreateIntentRequest(BaseModel):
    ride_id: str = Field(min_length=1)


class ConfirmPaymentRequest(BaseModel):
    payment_intent_id: str = Field(min_length=1)
