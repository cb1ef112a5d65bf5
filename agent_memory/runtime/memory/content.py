"""
Memory Content - Tagged payload variants for incoming memories

WHAT: Typed shapes for the opaque content agents attach to a memory
WHERE: agent_memory/runtime/memory/content.py - data layer, below models
WHO: Engine store path rendering payloads to text for embedding
TIME: Coercion <1ms per payload

Each input memory type (task, decision, insight, error, feedback) has its own
payload shape. Anything that does not fit its variant is kept verbatim in
RawContent so no caller payload is ever rejected for its shape alone.
"""

from __future__ import annotations

import json
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError


class TaskContent(BaseModel):
    """Work an agent carried out."""

    kind: Literal["task"] = "task"
    description: str = Field(min_length=1)
    task_id: Optional[str] = None
    status: Optional[str] = None
    result: Optional[str] = None
    context: Optional[str] = None

    def as_text(self) -> str:
        parts = [self.description]
        if self.status:
            parts.append(f"status: {self.status}")
        if self.result:
            parts.append(f"result: {self.result}")
        return "\n".join(parts)


class DecisionContent(BaseModel):
    """A choice made, with its rationale and the options that lost."""

    kind: Literal["decision"] = "decision"
    decision: str = Field(min_length=1)
    rationale: str = ""
    alternatives: List[str] = Field(default_factory=list)
    context: Optional[str] = None

    def as_text(self) -> str:
        parts = [self.decision]
        if self.rationale:
            parts.append(f"because {self.rationale}")
        if self.alternatives:
            parts.append(f"alternatives: {', '.join(self.alternatives)}")
        return "\n".join(parts)


class InsightContent(BaseModel):
    kind: Literal["insight"] = "insight"
    insight: str = Field(min_length=1)
    evidence: List[str] = Field(default_factory=list)
    context: Optional[str] = None

    def as_text(self) -> str:
        if not self.evidence:
            return self.insight
        return self.insight + "\n" + "\n".join(f"- {e}" for e in self.evidence)


class ErrorContent(BaseModel):
    kind: Literal["error"] = "error"
    message: str = Field(min_length=1)
    details: str = ""
    resolution: Optional[str] = None
    context: Optional[str] = None

    def as_text(self) -> str:
        parts = [f"error: {self.message}"]
        if self.details:
            parts.append(self.details)
        if self.resolution:
            parts.append(f"resolved by: {self.resolution}")
        return "\n".join(parts)


class FeedbackContent(BaseModel):
    kind: Literal["feedback"] = "feedback"
    feedback: str = Field(min_length=1)
    source: Optional[str] = None
    rating: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    context: Optional[str] = None

    def as_text(self) -> str:
        if self.source:
            return f"{self.feedback} (from {self.source})"
        return self.feedback


class RawContent(BaseModel):
    """Fallback for payloads that match no known variant."""

    kind: Literal["raw"] = "raw"
    payload: Any = None
    context: Optional[str] = None

    def as_text(self) -> str:
        if self.payload is None:
            return ""
        if isinstance(self.payload, str):
            return self.payload
        if isinstance(self.payload, (dict, list)):
            return json.dumps(self.payload, indent=2, sort_keys=True, default=str)
        return str(self.payload)


MemoryContent = Annotated[
    Union[TaskContent, DecisionContent, InsightContent, ErrorContent, FeedbackContent, RawContent],
    Field(discriminator="kind"),
]

_CONTENT_ADAPTER: TypeAdapter[Any] = TypeAdapter(MemoryContent)

_VARIANTS: Dict[str, type[BaseModel]] = {
    "task": TaskContent,
    "decision": DecisionContent,
    "insight": InsightContent,
    "error": ErrorContent,
    "feedback": FeedbackContent,
}


def coerce_content(memory_type: str, content: Any) -> MemoryContent:
    """Map an opaque payload onto the variant for ``memory_type``.

    Strings, non-dict payloads and dicts that fail the variant's shape are
    preserved in :class:`RawContent`. A dict whose ``context`` key is a string
    keeps that context on the raw fallback too.
    """
    if isinstance(content, BaseModel) and hasattr(content, "as_text"):
        return content  # type: ignore[return-value]

    if isinstance(content, dict):
        if "kind" in content:
            try:
                return _CONTENT_ADAPTER.validate_python(content)
            except PydanticValidationError:
                pass
        variant = _VARIANTS.get(memory_type)
        if variant is not None:
            try:
                return variant.model_validate(content)  # type: ignore[return-value]
            except PydanticValidationError:
                pass
        context = content.get("context")
        return RawContent(payload=content, context=context if isinstance(context, str) else None)

    return RawContent(payload=content)


def render_content(content: MemoryContent) -> str:
    return content.as_text()


__all__ = [
    "TaskContent",
    "DecisionContent",
    "InsightContent",
    "ErrorContent",
    "FeedbackContent",
    "RawContent",
    "MemoryContent",
    "coerce_content",
    "render_content",
]
