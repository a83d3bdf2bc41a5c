from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class PaymentIntentResult(BaseModel):
    """
    Secrets à courte durée de vie renvoyés au SDK mobile (un jeu par tentative de checkout).
    Ne jamais les journaliser en entier ni les persister au-delà de la session de checkout.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    payment_intent: str = Field(alias="paymentIntent")
    ephemeral_key: str = Field(alias="ephemeralKey")
    customer: str
    publishable_key: Optional[str] = Field(default=None, alias="publishableKey")

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True)
