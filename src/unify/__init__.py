"""Unify — HTML-native static site composition.

Pages declare the layout they belong to with ``data-unify`` and fill the
layout's ``.unify-*`` areas by class.  Components are spliced in the same
way, and the whole tree is rebuilt incrementally as files change.

Quick start::

    import unify

    unify.build("my-site/")

Two modes::

    unify.build("my-site/")       # One-shot build (cached)
    unify.watch("my-site/")       # Build, then rebuild on change

Composing a single page::

    from unify import CompositionEngine

    result = CompositionEngine().compose("src/index.html", html, source_root="src")

"""

__version__ = "0.1.0"
__all__ = [
    "CompositionEngine",
    "UnifyConfig",
    "__version__",
    "build",
    "watch",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import unify`` fast while providing a clean top-level API.
    """
    if name == "UnifyConfig":
        from unify.config import UnifyConfig

        return UnifyConfig

    if name == "CompositionEngine":
        from unify.cascade.composer import CompositionEngine

        return CompositionEngine

    if name == "build":
        from unify.app import build

        return build

    if name == "watch":
        from unify.app import watch

        return watch

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
