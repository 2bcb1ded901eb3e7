"""Application settings and configuration management.

This module provides Pydantic-based settings management that loads
configuration from environment variables or a .env file. Settings include
the local boundary data directory, the remote object-storage URL template
used when a department dataset is not available locally, the cache TTL,
CORS origins, and logging/server options.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from census_api.core.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.data_dir)

    Environment variables can override defaults:
        >>> DATA_DIR=/srv/census/data
        >>> REMOTE_URL_TEMPLATE=https://bucket.s3.amazonaws.com/DPTO_CCDGO_{code}.gpkg
        >>> CACHE_TTL_SECONDS=600
"""

import functools
import pathlib

import pydantic
import pydantic_settings

DEFAULT_ORIGINS = [
    "http://localhost:5173",
    "http://localhost:3000",
    "https://census-frontend-ttbh-git-main-jnvdurgas-projects.vercel.app",
]


class Settings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    All settings can be overridden via environment variables or .env file.
    The temporary download directory is created on initialization via
    ensure_directories().

    Attributes:
        data_dir: Directory holding the local GeoPackage datasets.
        department_file: Departments dataset, relative to data_dir
            unless absolute.
        municipality_file_template: File name pattern of the per-department
            municipality datasets; ``{code}`` is the department code.
        remote_url_template: URL pattern of the remote municipality
            datasets (``{code}`` is substituted). None disables the
            remote fallback.
        remote_timeout_seconds: Timeout applied to remote downloads.
        cache_ttl_seconds: Age after which a cached collection is stale.
        temp_dir: Directory for downloaded datasets while they are parsed.
        allow_origins: List of allowed CORS origins.
        allow_credentials: Whether CORS responses allow credentials.
        preload_on_startup: Warm the cache with every local dataset when
            the application starts.
        log_level: Root logging level name.
        host: Interface the development server binds to.
        port: Port the development server listens on.

    Example:
        Create settings with custom values:
            >>> settings = Settings(
            ...     data_dir=Path("/srv/census/data"),
            ...     cache_ttl_seconds=60,
            ... )
            >>> settings.ensure_directories()
    """

    data_dir: pathlib.Path = pathlib.Path("data")
    department_file: pathlib.Path = pathlib.Path("department.gpkg")
    municipality_file_template: str = "DPTO_CCDGO_{code}.gpkg"
    remote_url_template: str | None = None
    remote_timeout_seconds: float = pydantic.Field(default=30.0, gt=0)
    cache_ttl_seconds: float = pydantic.Field(default=5 * 60, ge=0)
    temp_dir: pathlib.Path = pathlib.Path("/tmp/census_api")
    allow_origins: list[str] = DEFAULT_ORIGINS
    allow_credentials: bool = True
    preload_on_startup: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = pydantic.Field(default=3000, ge=1, le=65535)

    model_config = pydantic_settings.SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @property
    def department_path(self) -> pathlib.Path:
        """Location of the departments dataset."""
        return self.data_dir / self.department_file

    def ensure_directories(self) -> None:
        """Create the local directory used for downloaded datasets."""
        self.temp_dir.mkdir(parents=True, exist_ok=True)


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance with directories initialized.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the application. Directories are created on first call.
    Subsequent calls return the same cached instance.

    Returns:
        Settings instance with all configuration values populated and
        directories ensured to exist.
    """
    settings = Settings()
    settings.ensure_directories()
    return settings
