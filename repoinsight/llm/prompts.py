"""Prompt templates for repository summaries."""

from repoinsight.extractors.models import RepositoryMetrics


class RepoSummaryPrompt:
    """Prompt asking for a short, neutral repository summary.

    Formats the extracted facts plus a README excerpt into a user prompt.
    """

    DEFAULT_SYSTEM_PROMPT = """You summarize software repositories for engineering managers.

Rules:
- Use ONLY the facts provided
- Be neutral and factual
- Focus on health, quality and documentation
- At most 120 words, no lists"""

    DEFAULT_USER_TEMPLATE = """Repository: {handle}
Dominant language: {language}
Languages: {languages}
Lines of code: {total_loc}
Source files: {total_files}
Style issues: {lint_issues}
Hard-coded secrets found: {security_findings}
README score (out of 100): {readme_score}
Has tests: {has_tests}
Has CI: {has_ci}
Contributors: {contributors}

README excerpt:
{readme_excerpt}

Summary:"""

    def __init__(
        self,
        system_prompt: str | None = None,
        user_template: str | None = None,
        excerpt_chars: int = 1500,
    ) -> None:
        """Initialize the prompt.

        Args:
            system_prompt: Custom system prompt.
            user_template: Custom user message template.
            excerpt_chars: Longest README excerpt to include.
        """
        self.system_prompt = system_prompt or self.DEFAULT_SYSTEM_PROMPT
        self.user_template = user_template or self.DEFAULT_USER_TEMPLATE
        self.excerpt_chars = excerpt_chars

    def format(self, metrics: RepositoryMetrics, readme_excerpt: str = "") -> str:
        """Render the user prompt for one repository."""
        languages = ", ".join(
            f"{name} ({lines})"
            for name, lines in sorted(metrics.languages.items(), key=lambda item: -item[1])
        )
        return self.user_template.format(
            handle=metrics.handle,
            language=metrics.dominant_language or "unknown",
            languages=languages or "none detected",
            total_loc=metrics.total_loc,
            total_files=metrics.total_files,
            lint_issues=metrics.lint_issues,
            security_findings=metrics.security_findings,
            readme_score=metrics.readme_score,
            has_tests="yes" if metrics.has_tests else "no",
            has_ci="yes" if metrics.has_ci else "no",
            contributors=metrics.contributors,
            readme_excerpt=readme_excerpt.strip()[: self.excerpt_chars] or "(no README)",
        )

    def build_prompt(self, metrics: RepositoryMetrics, readme_excerpt: str = "") -> tuple[str, str]:
        """Build (system_prompt, user_prompt) for one repository."""
        return self.system_prompt, self.format(metrics, readme_excerpt)


def template_summary(metrics: RepositoryMetrics) -> str:
    """Deterministic summary used when no model output is available."""
    language = metrics.dominant_language or "an undetected language"
    parts = [
        f"{metrics.handle} is written mainly in {language} with "
        f"{metrics.total_loc} lines of code across {metrics.total_files} source files."
    ]

    practices = []
    if metrics.has_tests:
        practices.append("tests")
    if metrics.has_ci:
        practices.append("continuous integration")
    if practices:
        parts.append(f"It includes {' and '.join(practices)}.")
    else:
        parts.append("No tests or continuous integration were detected.")

    parts.append(f"The README scores {metrics.readme_score}/100.")
    if metrics.security_findings:
        parts.append(f"{metrics.security_findings} potential hard-coded secrets were found.")
    if metrics.contributors:
        noun = "contributor" if metrics.contributors == 1 else "contributors"
        parts.append(f"Code is attributed to {metrics.contributors} {noun}.")

    return " ".join(parts)
