"""Domain models for hosted checkout."""

from pydantic import BaseModel


class CheckoutSession(BaseModel):
    """A provider-hosted checkout session the client is redirected to."""

    session_id: str
    url: str
