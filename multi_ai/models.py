"""Pure dataclasses for the orchestration pipeline. No logic, no deps."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal

Role = Literal["user", "assistant", "system"]


class Strategy(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    DEBATE = "debate"
    CONSENSUS = "consensus"
    SPECIALIST = "specialist"


@dataclass(frozen=True)
class OrchestrationOptions:
    max_rounds: int = 3
    temperature: float | None = None   # None -> provider default
    include_reasoning: bool = False


@dataclass(frozen=True)
class OrchestrationRequest:
    prompt: str
    strategy: Strategy | str           # raw strings are validated by the engine
    models: tuple[str, ...] | None = None
    options: OrchestrationOptions = field(default_factory=OrchestrationOptions)
    use_context: bool = True


@dataclass(frozen=True)
class ContextMessage:
    role: Role
    content: str


@dataclass(frozen=True)
class ProviderResponse:
    model: str
    response: str
    timestamp: datetime


@dataclass
class DebateRound:
    round: int                         # 1-based
    responses: list[ProviderResponse] = field(default_factory=list)


@dataclass(frozen=True)
class FailedCall:
    model: str
    error: str


@dataclass(frozen=True)
class CallOutcome:
    """One settled provider call in a fan-out: exactly one of response/error is set."""

    model: str
    response: ProviderResponse | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.response is not None


@dataclass(frozen=True)
class SpecialistChoice:
    model: str
    reason: str


@dataclass(frozen=True)
class ConversationHandle:
    id: str
    title: str | None = None


@dataclass
class OrchestrationResult:
    strategy: Strategy
    models: list[str]
    responses: list[ProviderResponse] | None = None
    rounds: list[DebateRound] | None = None
    synthesis: str | None = None
    consensus: str | None = None
    conclusion: str | None = None
    conversation_id: str | None = None
    failures: list[FailedCall] = field(default_factory=list)
    classification: Any = None         # routing.ClassificationOutcome for Specialist
    specialists: list[SpecialistChoice] = field(default_factory=list)


@dataclass(frozen=True)
class Message:
    id: str
    conversation_id: str
    role: Role
    content: str
    timestamp: datetime
    model: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class Conversation:
    id: str
    title: str | None
    created_at: datetime
    updated_at: datetime
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class ModelUsage:
    model: str
    count: int


@dataclass
class ContextSummary:
    total_conversations: int
    total_messages: int
    model_usage: list[ModelUsage] = field(default_factory=list)
    current_conversation_id: str | None = None
