"""upgradarr core package.

Release feeds are reconciled against a held media library:

- **parsers**: release-title, feed-item and TV show/season parsing
- **resolver** / **tv_resolver**: external identifier resolution across providers
- **quality_scorer**: configurable quality scoring and admission
- **reconciliation**: the per-release status state machine
- **pipeline**: the staged batch sync (library, feeds, matching, backfill)
- **persistence**: SQLite stores for releases, settings and structured logs

The main entry point is ``Pipeline`` built from ``pipeline.build_context``.
"""

from .pipeline import Pipeline, PipelineContext, build_context
from .version import __version__

__all__ = [
    "__version__",
    "Pipeline",
    "PipelineContext",
    "build_context",
]
