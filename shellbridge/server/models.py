"""Pydantic models for messages exchanged with the front-end."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ExecRequest(BaseModel):
    """Inbound call: invoke ``service.action(args)``."""

    model_config = ConfigDict(populate_by_name=True)

    service: str = Field(..., min_length=1, description="Declared service name.")
    action: str = Field(..., min_length=1, description="Action exposed by the service.")
    args: List[Any] = Field(default_factory=list, description="Positional arguments.")
    callback_id: str = Field(
        ..., alias="callbackId", min_length=1,
        description="Correlation token results are pushed back under.",
    )


class ResultMessage(BaseModel):
    """Outbound push of one result envelope."""

    channel: str
    result: Dict[str, Any]


class ServiceStatus(BaseModel):
    """Status of one declared service."""

    name: str
    aliases: List[str] = Field(default_factory=list)
    module: Optional[str] = None
    plugin_id: Optional[str] = None
    state: str
    generation: Optional[str] = None
    error: Optional[str] = None


class BridgeStatus(BaseModel):
    """Response model for GET /services."""

    scheme: str
    hostname: str
    base_url: str
    ready: bool
    configuration: Optional[Dict[str, Any]] = None
    services: List[ServiceStatus]
