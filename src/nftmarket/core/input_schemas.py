from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, conint

Uint = conint(ge=0)


class _OrderInput(BaseModel):
    # Accepts both snake_case and the exchange's camelCase keys; unknown keys
    # (e.g. a taker on maker input) are ignored.
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class MakerOrderInput(_OrderInput):
    collection: str
    price: Uint
    token_id: Uint = Field(alias="tokenId")
    nonce: Uint
    end_time: int = Field(alias="endTime")
    amount: Uint | None = None
    strategy: str | None = None
    currency: str | None = None
    start_time: int | None = Field(default=None, alias="startTime")
    min_percentage_to_ask: conint(ge=0, le=10_000) | None = Field(default=None, alias="minPercentageToAsk")
    params: list[Any] | None = None


class CollectionOfferInput(_OrderInput):
    collection: str
    price: Uint
    nonce: Uint
    end_time: int = Field(alias="endTime")
    amount: Uint | None = None
    strategy: str | None = None
    currency: str | None = None
    start_time: int | None = Field(default=None, alias="startTime")
    min_percentage_to_ask: conint(ge=0, le=10_000) | None = Field(default=None, alias="minPercentageToAsk")
    params: list[Any] | None = None


class TakerOrderInput(_OrderInput):
    taker: str
    min_percentage_to_ask: conint(ge=0, le=10_000) | None = Field(default=None, alias="minPercentageToAsk")
    params: list[Any] | None = None
