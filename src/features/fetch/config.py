"""Configuration model for the HTTP fetch layer."""

from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from src.features.fetch.constants import DEFAULT_MAX_RESPONSE_SIZE_BYTES
from src.features.fetch.models import RetryPolicy


DEFAULT_USER_AGENT = "scratchpad-harvester/1.0"
DEFAULT_TIMEOUT_SECONDS = 30


class FetchConfig(BaseModel):
    """Settings for requests against the listing endpoint."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        DEFAULT_USER_AGENT
    )
    timeout_seconds: Annotated[float, Field(ge=1.0, le=300.0)] = float(
        DEFAULT_TIMEOUT_SECONDS
    )
    max_response_size_bytes: Annotated[int, Field(ge=1024, le=200 * 1024 * 1024)] = (
        DEFAULT_MAX_RESPONSE_SIZE_BYTES
    )
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
