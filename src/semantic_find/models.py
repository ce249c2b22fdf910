import math
from enum import Enum
from typing import Any, Literal, TypeAlias

from pydantic import BaseModel, Field

MessageType: TypeAlias = Literal["GET_MODEL_STATUS", "GENERATE_EMBEDDING"]

MODEL_HOST_TARGET = "model_host"


class ModelStatus(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class ModelState(BaseModel):
    """Readiness of the embedding model as seen by the session"""

    status: ModelStatus = Field(
        default=ModelStatus.UNLOADED, description="Lifecycle status of the model"
    )
    progress: int = Field(default=0, ge=0, le=100, description="Load progress in percent")
    error_detail: str | None = Field(
        default=None, description="Why the model failed to load, if it did"
    )

    @property
    def ready(self) -> bool:
        return self.status == ModelStatus.READY


class BackendStatus(BaseModel):
    """Status payload returned by the model host for GET_MODEL_STATUS"""

    ready: bool = Field(default=False, description="Whether the model can embed")
    loading: bool = Field(default=False, description="Whether the model is loading")
    progress: float | None = Field(
        default=None, description="Load progress in percent, if the host knows it"
    )
    error: str | None = Field(default=None, description="Load error, if any")
    host: str | None = Field(default=None, description="Name of the hosting context")
    model: str | None = Field(default=None, description="Identity of the hosted model")

    def to_model_state(self) -> ModelState:
        if self.error:
            return ModelState(status=ModelStatus.FAILED, error_detail=self.error)
        if self.ready:
            return ModelState(status=ModelStatus.READY, progress=100)
        if self.loading:
            progress = self.progress
            if progress is None or not math.isfinite(progress):
                progress = 0
            return ModelState(
                status=ModelStatus.LOADING, progress=max(0, min(99, int(progress)))
            )
        return ModelState(status=ModelStatus.UNLOADED)


class BackendRequest(BaseModel):
    """Envelope sent from a session to the model host"""

    id: str = Field(description="Correlation id echoed back by the host")
    type: MessageType = Field(description="Requested operation")
    target: str = Field(default=MODEL_HOST_TARGET, description="Addressed context")
    text: str | None = Field(default=None, description="Text to embed")

    def to_message(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)
