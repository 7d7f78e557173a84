"""RepoInsight: repository analysis pipeline and semantic search."""

__version__ = "0.1.0"
