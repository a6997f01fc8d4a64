"""Content layer: source files as the build sees them.

Classifies files, validates paths, expands includes, scans and minifies
output, maps pages to output paths, and watches the tree for changes.
"""

from unify.content.classifier import FileClassification, FileClassifier
from unify.content.includes import IncludeResult, process_includes
from unify.content.links import normalize_links, output_path_for
from unify.content.security import SecurityWarning, scan_for_security_issues, validate_path
from unify.content.watcher import CancellationToken, ChangeEvent, FileWatcher

__all__ = [
    "CancellationToken",
    "ChangeEvent",
    "FileClassification",
    "FileClassifier",
    "FileWatcher",
    "IncludeResult",
    "SecurityWarning",
    "normalize_links",
    "output_path_for",
    "process_includes",
    "scan_for_security_issues",
    "validate_path",
]
