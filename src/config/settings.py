"""
Application settings and configuration

Uses pydantic-settings for type-safe configuration via environment variables.
All settings use CONDCOMP_ prefix (e.g., CONDCOMP_LEXER_NAME=typescript).

Settings can also be loaded from a .env file in the working directory.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application configuration via environment variables.

    Environment variables use CONDCOMP_ prefix.

    Examples:
        CONDCOMP_LEXER_NAME=typescript
        CONDCOMP_FILE_ENCODING=latin-1
        CONDCOMP_DEBUG_MODE=true
    """

    model_config = SettingsConfigDict(
        env_prefix="CONDCOMP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Scanner configuration
    lexer_name: str = Field(
        default="javascript",
        description="Pygments lexer alias used to locate comments in the source",
    )

    # CLI configuration
    file_encoding: str = Field(
        default="utf-8",
        description="Encoding used to read and write source files",
    )

    env_interpolate: bool = Field(
        default=True,
        description="Expand ${VAR} references when loading an env file",
    )

    debug_mode: bool = Field(
        default=False,
        description="Force debug-level verbosity in the CLI",
    )

    def verbosity_resolve(self, verbosity: int) -> int:
        """
        Effective CLI verbosity after applying debug_mode.

        Example:
            >>> AppSettings(debug_mode=True).verbosity_resolve(1)
            3
        """
        if self.debug_mode:
            return max(verbosity, 3)
        return verbosity


# Singleton instance - import this in your code
appsettings = AppSettings()
