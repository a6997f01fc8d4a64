"""Tests for unify package exports and metadata."""

import unify


class TestPackageMetadata:
    """Package-level exports and metadata."""

    def test_version_string(self) -> None:
        assert isinstance(unify.__version__, str)
        assert "0.1.0" in unify.__version__

    def test_all_exports_resolvable(self) -> None:
        for name in unify.__all__:
            getattr(unify, name)

    def test_lazy_exports_are_the_real_objects(self) -> None:
        from unify.app import build
        from unify.cascade.composer import CompositionEngine

        assert unify.build is build
        assert unify.CompositionEngine is CompositionEngine

    def test_invalid_attribute_raises(self) -> None:
        import pytest

        with pytest.raises(AttributeError, match="no attribute"):
            unify.nonexistent_thing  # type: ignore[attr-defined]  # noqa: B018
