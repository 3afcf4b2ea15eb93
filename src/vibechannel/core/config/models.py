"""
Configuration data models for vibechannel.

These models define the structure of .vibechannel.json and
~/.config/vibechannel/config.json files, with validation via Pydantic.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SyncConfig(BaseModel):
    """Background synchronization settings."""

    interval_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Seconds between sync ticks",
    )
    auto_push: bool = Field(
        default=True,
        description="Push queued commits immediately and on every tick",
    )


class GitConfig(BaseModel):
    """How git is invoked."""

    remote_name: str = Field(
        default="origin",
        min_length=1,
        description="Remote that holds the shared data branch",
    )
    command_timeout: float = Field(
        default=60.0,
        gt=0,
        description="Timeout in seconds for local git commands",
    )
    network_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Timeout in seconds for fetch, pull and push",
    )

    @field_validator("remote_name")
    @classmethod
    def validate_remote_name(cls, v: str) -> str:
        if any(ch.isspace() for ch in v) or v.startswith("-"):
            raise ValueError(f"Invalid remote name: {v!r}")
        return v


class IdentityConfig(BaseModel):
    """Who is writing messages from this machine."""

    sender: str | None = Field(
        default=None,
        description="Default sender; falls back to git config user.name",
    )


class VibeChannelConfig(BaseModel):
    """
    Top-level configuration.

    Example:
        >>> config = VibeChannelConfig(sync={"interval_seconds": 30})
        >>> config.sync.interval_seconds
        30.0
    """

    model_config = ConfigDict(extra="ignore")

    sync: SyncConfig = Field(default_factory=SyncConfig)
    git: GitConfig = Field(default_factory=GitConfig)
    identity: IdentityConfig = Field(default_factory=IdentityConfig)
