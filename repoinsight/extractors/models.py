"""Repository metric models."""

from pydantic import BaseModel, Field


class OwnershipShare(BaseModel):
    """Share of surviving lines attributed to one author.

    Attributes:
        author: Author name as recorded by git.
        lines: Lines attributed to the author.
        share: Fraction of all attributed lines, in [0, 1].
    """

    author: str = Field(description="Author name")
    lines: int = Field(ge=0, description="Attributed lines")
    share: float = Field(ge=0.0, le=1.0, description="Fraction of attributed lines")


class Inventory(BaseModel):
    """File and language inventory of a snapshot."""

    languages: dict[str, int] = Field(default_factory=dict, description="Code lines per language")
    total_files: int = Field(default=0, ge=0, description="Counted source files")
    total_loc: int = Field(default=0, ge=0, description="Non-blank lines across source files")
    dominant_language: str | None = Field(default=None, description="Language with most lines")


class RepositoryMetrics(BaseModel):
    """Facts extracted from one repository snapshot.

    Attributes:
        handle: Repository handle (owner/name).
        dominant_language: Language with the most code lines.
        languages: Code lines per language.
        total_files: Number of counted source files.
        total_loc: Non-blank lines across counted files.
        lint_issues: Style issues found by the lightweight checker.
        security_findings: Hard-coded secret matches.
        readme_score: README checklist score in [0, 100].
        has_tests: Whether test files or directories exist.
        has_ci: Whether CI configuration exists.
        ownership: Per-author line shares from git blame.
    """

    handle: str = Field(description="Repository handle")
    dominant_language: str | None = Field(default=None)
    languages: dict[str, int] = Field(default_factory=dict)
    total_files: int = Field(default=0, ge=0)
    total_loc: int = Field(default=0, ge=0)
    lint_issues: int = Field(default=0, ge=0)
    security_findings: int = Field(default=0, ge=0)
    readme_score: int = Field(default=0, ge=0, le=100)
    has_tests: bool = Field(default=False)
    has_ci: bool = Field(default=False)
    ownership: list[OwnershipShare] = Field(default_factory=list)

    @property
    def contributors(self) -> int:
        """Number of distinct authors with attributed lines."""
        return sum(1 for share in self.ownership if share.lines > 0)
