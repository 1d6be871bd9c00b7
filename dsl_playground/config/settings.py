"""
Application Settings
===================

Main application settings and environment configuration using Pydantic Settings.
Supports development, testing, and production environments.
"""

from typing import Optional, List, Union
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import json
from pathlib import Path


DEFAULT_ALLOWED_ATTRIBUTES = [
    "id",
    "title",
    "role",
    "href",
    "src",
    "alt",
    "type",
    "name",
    "value",
    "placeholder",
    "for",
    "action",
    "method",
    "rows",
    "selected",
    "disabled",
    "loading",
    "target",
    "rel",
]

DEFAULT_ALLOWED_CSS_PROPERTIES = [
    "color",
    "background",
    "background-color",
    "border",
    "border-color",
    "border-radius",
    "border-width",
    "border-style",
    "margin",
    "margin-top",
    "margin-bottom",
    "margin-left",
    "margin-right",
    "padding",
    "padding-top",
    "padding-bottom",
    "padding-left",
    "padding-right",
    "width",
    "height",
    "min-width",
    "min-height",
    "max-width",
    "max-height",
    "font-size",
    "font-weight",
    "font-style",
    "font-family",
    "line-height",
    "letter-spacing",
    "text-align",
    "text-decoration",
    "text-transform",
    "display",
    "flex",
    "flex-direction",
    "flex-wrap",
    "flex-grow",
    "flex-shrink",
    "align-items",
    "justify-content",
    "gap",
    "opacity",
    "overflow",
    "white-space",
]


def _parse_list(v: Union[str, List[str]]) -> List[str]:
    """Parse a list setting from a JSON array or comma-separated string."""
    if isinstance(v, str):
        v = v.strip()
        if v.startswith("[") and v.endswith("]"):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        return [item.strip() for item in v.split(",") if item.strip()]
    return v


class Settings(BaseSettings):
    """Main application settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(default="DSL Playground", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    debug: bool = Field(default=True, description="Debug mode")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")

    # Registry Configuration
    registry_path: Optional[Path] = Field(
        default=None, description="Element catalog YAML file (defaults to the bundled catalog)"
    )

    # Sandbox Configuration
    evaluation_timeout: float = Field(
        default=2.0, gt=0, description="Wall-clock budget per evaluation in seconds"
    )
    evaluation_workers: int = Field(default=4, ge=1, description="Evaluation worker threads")
    evaluation_queue_size: int = Field(
        default=16, ge=0, description="Evaluations allowed to wait for a free worker"
    )
    max_source_length: int = Field(
        default=50_000, ge=1, description="Maximum accepted DSL source length in characters"
    )
    max_string_length: int = Field(
        default=100_000, ge=1, description="Maximum length of a string value built at runtime"
    )
    max_nesting_depth: int = Field(
        default=32, ge=1, description="Maximum syntactic nesting depth of DSL source"
    )
    include_python_trace: bool = Field(
        default=False, description="Attach interpreter tracebacks to internal runtime faults"
    )

    # Rendering Configuration
    sanitizer_mode: str = Field(
        default="drop", description="Sanitizer behavior on rejected values: drop or strict"
    )
    allowed_attributes: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_ATTRIBUTES),
        description="HTML attribute names that may be rendered",
    )
    allowed_attribute_prefixes: List[str] = Field(
        default=["data-", "aria-"], description="Attribute name prefixes that may be rendered"
    )
    allowed_css_properties: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOWED_CSS_PROPERTIES),
        description="Inline style properties that may be rendered",
    )
    allowed_url_schemes: List[str] = Field(
        default=["http", "https", "mailto"], description="URL schemes allowed in links and images"
    )
    class_token_pattern: str = Field(
        default=r"^-?[A-Za-z0-9][A-Za-z0-9_:/.\-\[\]#%]*$",
        description="Regular expression every rendered class token must match",
    )
    max_class_token_length: int = Field(default=64, ge=1, description="Maximum class token length")
    preview_stylesheet_url: Optional[str] = Field(
        default=None, description="Stylesheet linked from the preview document"
    )

    # Security Configuration
    allowed_hosts: List[str] = Field(default=["*"], description="Allowed hosts for CORS")

    # API Documentation Configuration
    enable_docs: bool = Field(default=True, description="Enable FastAPI docs endpoint")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Logging level")
    log_to_file: bool = Field(default=False, description="Write rotating log files")
    storage_path: Path = Field(default=Path("./storage"), description="Storage directory path")

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("sanitizer_mode")
    @classmethod
    def validate_sanitizer_mode(cls, v: str) -> str:
        """Validate sanitizer mode."""
        allowed = {"drop", "strict"}
        if v.lower() not in allowed:
            raise ValueError(f"Sanitizer mode must be one of: {allowed}")
        return v.lower()

    @field_validator(
        "allowed_hosts",
        "allowed_attributes",
        "allowed_attribute_prefixes",
        "allowed_css_properties",
        "allowed_url_schemes",
        mode="before",
    )
    @classmethod
    def parse_list_fields(cls, v: Union[str, List[str]]) -> List[str]:
        """Parse list settings from string or list."""
        return _parse_list(v)

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="DSL_PLAYGROUND_"
    )


# Global settings instance - will be initialized when needed
settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings() -> Settings:
    """Reload settings from environment."""
    global settings
    settings = Settings()
    return settings
