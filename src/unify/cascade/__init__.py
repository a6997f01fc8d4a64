"""Cascade layer: layouts, components and areas composed into pages.

Resolves directive references, matches layout areas and landmarks against
page content, merges attributes and heads, and orchestrates the whole
layout chain in :class:`CompositionEngine`.
"""

from unify.cascade.areas import AreaMatch, LandmarkMatch, match_areas, match_landmarks
from unify.cascade.attributes import merge_attributes, strip_directives
from unify.cascade.composer import (
    MAX_DEPTH,
    ComposeOptions,
    CompositionEngine,
    CompositionResult,
)
from unify.cascade.head import HeadMerger
from unify.cascade.resolver import resolve_reference

__all__ = [
    "MAX_DEPTH",
    "AreaMatch",
    "ComposeOptions",
    "CompositionEngine",
    "CompositionResult",
    "HeadMerger",
    "LandmarkMatch",
    "match_areas",
    "match_landmarks",
    "merge_attributes",
    "resolve_reference",
    "strip_directives",
]
