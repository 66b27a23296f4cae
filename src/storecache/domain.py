"""Store entity."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Store(BaseModel):
    """A configured store. Ordered by ``display_order`` in listings."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    url: str | None = None
    hosts: list[str] = Field(default_factory=list)
    ssl_enabled: bool = False
    display_order: int = 0
    company_name: str | None = None
    default_language_id: str | None = None
    default_currency_id: str | None = None
