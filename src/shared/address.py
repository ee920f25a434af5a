"""Postal address value object captured at checkout."""

from pydantic import BaseModel, ConfigDict, Field


class Address(BaseModel):
    """A delivery or billing address.

    Once recorded on an Order the address is immutable; it is where the order
    went, regardless of later changes to the customer's address book.
    """

    model_config = ConfigDict(frozen=True)

    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str | None = Field(None, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=2, max_length=100)
