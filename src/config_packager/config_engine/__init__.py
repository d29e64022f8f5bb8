"""Config Engine - packaging of site configuration.

The Config Engine groups configuration items into packages:
- Assign items to packages of a bundle
- Detect packages whose active configuration drifted from the export
- Render line diffs between packaged and active values
- Export packages as an archive, a folder or git commits
- Import packaged values back into the active configuration

Usage:
    from config_packager.config import load_settings
    from config_packager.config_engine import PackageManager

    manager = PackageManager(load_settings())
    report = manager.export(method_id="archive", include_profile=True)
    for result in report.results:
        print(result.message)
"""

from .manager import PackageManager, PackageNotFoundError
from .schema import (
    UNPACKAGED,
    STATUS_LABELS,
    PackageStatus,
    DiffKind,
    ConfigItem,
    ConfigCollection,
    Bundle,
    Package,
    PackageFile,
    DiffRow,
    Override,
    GenerationResult,
    RevertResult,
)
from .assigner import PackageAssigner, BundleNotFoundError
from .collection import build_collection
from .diff import DiffEngine, summarize_overrides
from .overrides import OverrideDetector
from .renderer import PackageRenderer
from .generator import PackageGenerator, ExportReport
from .generation import (
    GENERATION_METHODS,
    GenerationError,
    GenerationMethod,
    create_generation_method,
)
from .revert import RevertExecutor

__all__ = [
    # Main manager
    "PackageManager",
    "PackageNotFoundError",
    # Schema classes
    "UNPACKAGED",
    "STATUS_LABELS",
    "PackageStatus",
    "DiffKind",
    "ConfigItem",
    "ConfigCollection",
    "Bundle",
    "Package",
    "PackageFile",
    "DiffRow",
    "Override",
    "GenerationResult",
    "RevertResult",
    # Components (for advanced use)
    "PackageAssigner",
    "BundleNotFoundError",
    "build_collection",
    "DiffEngine",
    "summarize_overrides",
    "OverrideDetector",
    "PackageRenderer",
    "PackageGenerator",
    "ExportReport",
    "GENERATION_METHODS",
    "GenerationError",
    "GenerationMethod",
    "create_generation_method",
    "RevertExecutor",
]
