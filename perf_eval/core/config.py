"""Run configuration for load and stress tests."""

import base64
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator


HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


class NoBody(BaseModel):
    """Request without a payload."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["none"] = "none"

    def to_request_kwargs(self) -> Dict[str, Any]:
        return {}


class RawBody(BaseModel):
    """Opaque bytes sent as-is, with an optional content type.

    In JSON form ``data`` is base64 encoded so arbitrary bytes survive.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["raw"] = "raw"
    data: bytes
    content_type: Optional[str] = None

    @field_serializer("data", when_used="json")
    def serialize_data(self, data: bytes) -> str:
        return base64.b64encode(data).decode("ascii")

    def to_request_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {"content": self.data}
        if self.content_type:
            kwargs["headers"] = {"Content-Type": self.content_type}
        return kwargs


class JsonBody(BaseModel):
    """A JSON-serializable value sent with an application/json content type."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["json"] = "json"
    value: Any = None

    def to_request_kwargs(self) -> Dict[str, Any]:
        return {"json": self.value}


RequestBody = Annotated[Union[NoBody, RawBody, JsonBody], Field(discriminator="kind")]

BODY_KINDS = ("none", "raw", "json")


def coerce_body(value: Any) -> Any:
    """Map loosely typed payloads onto the RequestBody variants."""
    if value is None:
        return NoBody()
    if isinstance(value, (NoBody, RawBody, JsonBody)):
        return value
    if isinstance(value, dict) and value.get("kind") in BODY_KINDS:
        # Tagged form produced by model_dump; the discriminator validates it.
        if value["kind"] == "raw" and isinstance(value.get("data"), str):
            # JSON dumps carry raw data base64 encoded.
            value = {**value, "data": base64.b64decode(value["data"], validate=True)}
        return value
    if isinstance(value, bytes):
        return RawBody(data=value)
    if isinstance(value, str):
        return RawBody(data=value.encode("utf-8"), content_type="text/plain; charset=utf-8")
    return JsonBody(value=value)


class LoadTestConfig(BaseModel):
    """Immutable description of a single load test run."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    target_url: str
    method: HttpMethod = "GET"
    headers: Dict[str, str] = Field(default_factory=dict)
    body: RequestBody = Field(default_factory=NoBody)
    duration: float = Field(gt=0, description="Run duration in seconds")
    concurrent_users: int = Field(ge=1)
    ramp_up_time: float = Field(default=0.0, ge=0, description="Seconds over which users are started")
    think_time: float = Field(default=0.0, ge=0, description="Milliseconds between a user's requests")

    @field_validator("target_url")
    @classmethod
    def validate_target_url(cls, v: str) -> str:
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("target_url must be an http(s) URL")
        return v

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("headers", mode="before")
    @classmethod
    def normalize_headers(cls, v: Any) -> Dict[str, str]:
        if v is None:
            return {}
        if isinstance(v, dict):
            return {str(k): str(val) for k, val in v.items()}
        raise ValueError("headers must be a mapping")

    @field_validator("body", mode="before")
    @classmethod
    def normalize_body(cls, v: Any) -> Any:
        return coerce_body(v)

    def ramp_up_delay_ms(self, user_index: int) -> float:
        """Start offset for user ``user_index``: ``(i / k) * ramp_up_time``."""
        if self.ramp_up_time <= 0:
            return 0.0
        return (user_index / self.concurrent_users) * self.ramp_up_time * 1000.0


class StressTestConfig(LoadTestConfig):
    """Load test that escalates concurrency in steps until the target saturates."""

    max_users: int = Field(ge=1)
    user_increment_step: int = Field(ge=1)
    user_increment_interval: float = Field(gt=0, description="Seconds per step")
    failure_threshold_percent: float = Field(ge=0, le=100)

    @model_validator(mode="before")
    @classmethod
    def default_duration(cls, data: Any) -> Any:
        # Each step runs for user_increment_interval; duration is informational.
        if isinstance(data, dict) and data.get("duration") is None:
            data = {**data, "duration": data.get("user_increment_interval")}
        return data

    def step_config(self, users: int) -> LoadTestConfig:
        """Build the one-step run for ``users`` concurrent users."""
        return LoadTestConfig(
            name=f"{self.name} - {users} users",
            target_url=self.target_url,
            method=self.method,
            headers=dict(self.headers),
            body=self.body,
            duration=self.user_increment_interval,
            concurrent_users=users,
            ramp_up_time=self.ramp_up_time,
            think_time=self.think_time,
        )


class RegressionThresholds(BaseModel):
    """Per-metric limits used by the regression detector."""
    model_config = ConfigDict(frozen=True)

    average_response_time: float = 20.0  # % increase
    p95_response_time: float = 25.0  # % increase
    requests_per_second: float = -15.0  # % change, a drop below this flags
    failure_rate: float = 5.0  # absolute percentage points
