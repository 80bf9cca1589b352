from pathlib import Path
from typing import Any, Literal

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from lexicard.domain.constants import (
    DEFAULT_SESSION_SIZE,
    DUE_RATIO,
    LEARNING_RATIO,
    PREVIEW_LIMIT,
    REINSERT_OFFSET,
)
from lexicard.domain.models import QuizMode


class AppConfig(BaseSettings):
    """
    Configuration model for lexicard.
    Supports loading from:
    1. Environment variables (LEXICARD_*)
    2. Config file (~/.config/lexicard/config.toml or ~/.lexicard.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="LEXICARD_",
        extra="ignore",
    )

    # Storage
    backend: Literal["sqlite", "memory"] = "sqlite"
    db_path: Path = Field(default_factory=lambda: Path.home() / ".local/share/lexicard/lexicard.db")

    # Sessions
    session_size: int = Field(default=DEFAULT_SESSION_SIZE, ge=1)
    due_ratio: float = Field(default=DUE_RATIO, ge=0.0, le=1.0)
    learning_ratio: float = Field(default=LEARNING_RATIO, ge=0.0, le=1.0)
    reinsert_offset: int = Field(default=REINSERT_OFFSET, ge=1)
    preferred_mode: QuizMode | None = None
    seed: int | None = None
    speak: bool = False

    # Import
    preview_limit: int = Field(default=PREVIEW_LIMIT, ge=0)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # Re-evaluated on every load so a patched HOME is honoured.
        toml_files = [
            Path.home() / ".config/lexicard/config.toml",
            Path.home() / ".lexicard.toml",
        ]
        toml_file = next((f for f in toml_files if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("db_path", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        return Path(v).expanduser()

    @field_validator("learning_ratio")
    @classmethod
    def ratios_fit(cls, v: float, info: ValidationInfo) -> float:
        due = info.data.get("due_ratio", DUE_RATIO)
        if due + v > 1.0:
            raise ValueError("due_ratio + learning_ratio must not exceed 1.0")
        return v


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/lexicard/config.toml (if exists)
    3. Environment variables (LEXICARD_*)
    4. cli_overrides (passed from Typer); None values are ignored
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    config = AppConfig(**overrides)

    if config.backend == "sqlite":
        config.db_path.parent.mkdir(parents=True, exist_ok=True)

    return config
