"""Generation methods for exporting packages."""
from typing import Optional

from ...config.settings import PackagerSettings
from .base import GenerationMethod, GenerationError, WriteOutcome
from .archive import ArchiveGenerationMethod
from .write import WriteGenerationMethod
from .vcs import VcsGenerationMethod

__all__ = [
    "GenerationMethod",
    "GenerationError",
    "WriteOutcome",
    "ArchiveGenerationMethod",
    "WriteGenerationMethod",
    "VcsGenerationMethod",
    "GENERATION_METHODS",
    "create_generation_method",
]

# Generation method registry
GENERATION_METHODS: dict[str, type[GenerationMethod]] = {
    ArchiveGenerationMethod.method_id: ArchiveGenerationMethod,
    WriteGenerationMethod.method_id: WriteGenerationMethod,
    VcsGenerationMethod.method_id: VcsGenerationMethod,
}


def create_generation_method(
    method_id: str,
    settings: PackagerSettings,
    profile_name: Optional[str] = None,
) -> GenerationMethod:
    """Factory function to create generation method instances."""
    method_id = (method_id or "").lower()
    if method_id not in GENERATION_METHODS:
        raise ValueError(f"Unknown generation method: {method_id}")

    return GENERATION_METHODS[method_id](settings, profile_name=profile_name)
