"""Build layer: dependency tracking, the content-hash cache and builds.

The :class:`IncrementalBuilder` composes pages with the cascade engine,
copies assets, and uses the :class:`DependencyTracker` and
:class:`BuildCache` to rebuild only what a change affects.
"""

from unify.build.assets import OutputFile
from unify.build.cache import BuildCache, CacheCheck, hash_content
from unify.build.dependencies import DependencyTracker
from unify.build.incremental import BuildIssue, BuildResult, IncrementalBuilder

__all__ = [
    "BuildCache",
    "BuildIssue",
    "BuildResult",
    "CacheCheck",
    "DependencyTracker",
    "IncrementalBuilder",
    "OutputFile",
    "hash_content",
]
