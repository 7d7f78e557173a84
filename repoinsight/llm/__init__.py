"""LLM client and repository summary module."""

from repoinsight.llm.client import LLMClient, OpenAICompatibleClient
from repoinsight.llm.models import (
    GenerationResult,
    Message,
    RepositorySummary,
    Role,
    SummarySource,
)
from repoinsight.llm.prompts import RepoSummaryPrompt, template_summary
from repoinsight.llm.summarizer import RepositorySummarizer, summarize_project

__all__ = [
    "GenerationResult",
    "LLMClient",
    "Message",
    "OpenAICompatibleClient",
    "RepoSummaryPrompt",
    "RepositorySummarizer",
    "RepositorySummary",
    "Role",
    "SummarySource",
    "summarize_project",
    "template_summary",
]
