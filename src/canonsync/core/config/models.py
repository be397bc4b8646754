"""
Configuration data models for canonsync.

These models define the structure of .canonsync.json and
~/.config/canonsync/config.json files, with validation via Pydantic.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BatchPolicy(str, Enum):
    """
    What a batch load does when one entity fails.

    ALL_OR_NOTHING raises on the first failure once loading finishes.
    BEST_EFFORT skips failed entities and reports them.
    """

    ALL_OR_NOTHING = "all_or_nothing"
    BEST_EFFORT = "best_effort"


class FormattingConfig(BaseModel):
    """
    Text normalization settings.

    Changing any of these changes canonical text, and therefore fingerprints.
    """
    units_to_separate: list[str] = Field(
        default_factory=lambda: ["%"],
        description="Unit symbols separated from a preceding number by one space"
    )
    capitalize_options: bool = Field(
        default=True,
        description="Capitalize option text unless the option preserves case"
    )


class AssetsConfig(BaseModel):
    """
    Image asset naming policy.

    Course and question images live under a directory named after the
    course key; bundles and icons get fixed directories.
    """
    root: Optional[str] = Field(
        default=None,
        description="Local asset root directory; renames are skipped when unset"
    )
    bundles_dir: str = Field(
        default="bundles",
        min_length=1,
        description="Directory holding bundle images"
    )
    icons_dir: str = Field(
        default="icons",
        min_length=1,
        description="Directory holding icon images"
    )


class SyncConfig(BaseModel):
    """
    Content loading and sync planning settings.
    """
    content_dir: str = Field(
        default="content",
        description="Root of the authored content tree"
    )
    metadata_path: str = Field(
        default=".canonsync/metadata.json",
        description="Where the last synced key -> fingerprint snapshot is kept"
    )
    batch_policy: BatchPolicy = Field(
        default=BatchPolicy.ALL_OR_NOTHING,
        description="Failure handling for batch loads"
    )
    max_workers: int = Field(
        default=4,
        ge=1,
        description="Worker threads used to canonicalize collections in parallel"
    )
    digest: str = Field(
        default="sha256",
        pattern="^(sha256|sha3_256|blake2b)$",
        description="Digest algorithm for fingerprints (256-bit)"
    )


class CanonsyncConfig(BaseModel):
    """
    Top-level canonsync configuration.

    Loaded from defaults, user config, project config, and env vars.

    Example:
        >>> config = CanonsyncConfig(
        ...     sync=SyncConfig(content_dir="courses", batch_policy="best_effort"),
        ... )
        >>> config.sync.batch_policy
        <BatchPolicy.BEST_EFFORT: 'best_effort'>
    """
    formatting: FormattingConfig = Field(
        default_factory=FormattingConfig,
        description="Text normalization"
    )
    assets: AssetsConfig = Field(
        default_factory=AssetsConfig,
        description="Image asset naming"
    )
    sync: SyncConfig = Field(
        default_factory=SyncConfig,
        description="Loading and sync planning"
    )

    model_config = ConfigDict(
        extra="allow",  # Allow extra fields for forward compatibility
        validate_assignment=True,
    )

    @field_validator('assets', mode='before')
    @classmethod
    def validate_assets(cls, v: object) -> object:
        """Accept a bare string as the asset root."""
        if isinstance(v, str):
            return {"root": v}
        return v
