"""Repository and project summaries."""

from collections.abc import Sequence

from repoinsight.exceptions import LLMError
from repoinsight.extractors.models import RepositoryMetrics
from repoinsight.llm.client import LLMClient
from repoinsight.llm.models import RepositorySummary, SummarySource
from repoinsight.llm.prompts import RepoSummaryPrompt, template_summary
from repoinsight.logging_config import get_logger
from repoinsight.scoring.models import ScoreBreakdown

logger = get_logger(__name__)


class RepositorySummarizer:
    """Summarizes repositories with an LLM, falling back to a template.

    Summaries never fail: any ``LLMError`` or empty completion yields the
    templated description instead.
    """

    def __init__(
        self,
        client: LLMClient | None = None,
        prompt: RepoSummaryPrompt | None = None,
    ) -> None:
        """Initialize the summarizer.

        Args:
            client: LLM client; None disables model summaries.
            prompt: Prompt template.
        """
        self._client = client
        self._prompt = prompt or RepoSummaryPrompt()

    async def summarize(
        self,
        metrics: RepositoryMetrics,
        readme_excerpt: str = "",
    ) -> RepositorySummary:
        """Summarize one repository."""
        if self._client is None:
            return RepositorySummary(
                handle=metrics.handle,
                text=template_summary(metrics),
                source=SummarySource.TEMPLATE,
            )

        system_prompt, user_prompt = self._prompt.build_prompt(metrics, readme_excerpt)
        try:
            result = await self._client.generate_text(user_prompt, system_prompt=system_prompt)
        except LLMError as e:
            logger.warning(
                f"LLM summary failed for {metrics.handle}, using template",
                extra={"handle": metrics.handle, "error_code": e.code.value},
            )
            result = None

        text = result.content.strip() if result is not None else ""
        if not text:
            return RepositorySummary(
                handle=metrics.handle,
                text=template_summary(metrics),
                source=SummarySource.TEMPLATE,
            )
        return RepositorySummary(handle=metrics.handle, text=text, source=SummarySource.LLM)


def summarize_project(summaries: Sequence[RepositorySummary], score: ScoreBreakdown) -> str:
    """Join repository summaries into the project summary."""
    count = len(summaries)
    noun = "repository" if count == 1 else "repositories"
    header = f"Overall score {score.overall_rounded}/100 across {count} {noun}."
    body = "\n\n".join(f"{summary.handle}: {summary.text}" for summary in summaries)
    return f"{header}\n\n{body}" if body else header
