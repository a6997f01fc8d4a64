"""Unify configuration.

UnifyConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, slots=True)
class UnifyConfig:
    """Configuration for a unify build.

    Attributes:
        root: Path to the project root directory (contains the source dir).
              Always resolved to an absolute path on construction.
        source_dir: Directory holding pages, layouts, components and assets.
        output: Output directory for built files.
        includes_dir: Fallback directory searched for short layout names.
        area_prefix: Class prefix that marks a layout element as an area.
        debounce_ms: Quiet period before a batch of watched changes is built.
        pretty_urls: Emit ``about.html`` as ``about/index.html`` and rewrite links.
        minify: Collapse insignificant whitespace in composed pages.
        clean: Remove the output directory before an initial build.
        cache_file: Build cache file name, relative to the output directory
            unless absolute.

    """

    root: Path = field(default_factory=Path.cwd)
    source_dir: str = "src"
    output: Path = field(default_factory=lambda: Path("dist"))
    includes_dir: str = "_includes"
    area_prefix: str = "unify-"
    debounce_ms: int = 100
    pretty_urls: bool = False
    minify: bool = False
    clean: bool = False
    cache_file: str = ".unify-cache.json"

    def __post_init__(self) -> None:
        # watchfiles reports absolute paths; relative_to() needs an absolute root.
        if not self.root.is_absolute():
            object.__setattr__(self, "root", self.root.resolve())

    @property
    def source_path(self) -> Path:
        """Absolute path to the source directory."""
        return self.root / self.source_dir

    @property
    def output_path(self) -> Path:
        """Absolute path to output directory."""
        if self.output.is_absolute():
            return self.output
        return self.root / self.output

    @property
    def cache_path(self) -> Path:
        """Absolute path to the persisted build cache."""
        cache = Path(self.cache_file)
        if cache.is_absolute():
            return cache
        return self.output_path / cache
