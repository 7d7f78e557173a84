"""LLM data models."""

from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Message role in a conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A chat message sent to the model."""

    role: Role = Field(description="Message role")
    content: str = Field(description="Message content")


class GenerationResult(BaseModel):
    """Result from LLM generation.

    Attributes:
        content: The generated text.
        model: Model used for generation.
        prompt_tokens: Number of tokens in the prompt.
        completion_tokens: Number of tokens in the completion.
    """

    content: str = Field(description="Generated text")
    model: str = Field(description="Model used")
    prompt_tokens: int = Field(default=0, description="Prompt token count")
    completion_tokens: int = Field(default=0, description="Completion token count")

    @property
    def total_tokens(self) -> int:
        """Prompt plus completion tokens."""
        return self.prompt_tokens + self.completion_tokens


class SummarySource(str, Enum):
    """Where a repository summary came from."""

    LLM = "llm"
    TEMPLATE = "template"


class RepositorySummary(BaseModel):
    """Free-text description of one repository.

    Attributes:
        handle: Repository handle.
        text: Summary text.
        source: Whether the model or the template produced it.
    """

    handle: str = Field(description="Repository handle")
    text: str = Field(description="Summary text")
    source: SummarySource = Field(description="Producer of the summary")
