"""Safe execution wrapper for GDAL/OGR command-line utilities.

This module provides a safe interface for executing the GDAL and OGR
command-line tools (ogrinfo, ogr2ogr) as subprocesses. It handles error
checking, returns the command's standard output, and provides clear error
messages when commands fail.

All commands are executed with proper error handling, and non-zero exit codes
result in CommandError exceptions with the command's stderr output.

Example:
    Describe a GeoPackage as JSON:
        >>> from census_api.utils.gdal_helpers import run_command, CommandError

        >>> try:
        ...     output = run_command(
        ...         ["ogrinfo", "-json", "-ro", "-so", "department.gpkg"]
        ...     )
        ... except CommandError as e:
        ...     print(f"Command failed: {e}")

    Stream the first layer as GeoJSON:
        >>> run_command([
        ...     "ogr2ogr",
        ...     "-f", "GeoJSON",
        ...     "/vsistdout/",
        ...     "department.gpkg",
        ...     "department",
        ... ])
"""

from __future__ import annotations

import subprocess
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Iterable


class CommandError(RuntimeError):
    """Exception raised when a GDAL/OGR subprocess command fails.

    Contains the error message from the failed command's stderr output,
    or the reason the executable could not be started at all.

    Example:
        Handle command failures:
            >>> from census_api.utils.gdal_helpers import (
            ...     run_command,
            ...     CommandError,
            ... )

            >>> try:
            ...     run_command(["ogrinfo", "-json", "missing.gpkg"])
            ... except CommandError as e:
            ...     print(f"GDAL command failed: {e}")
    """


def run_command(
    command: Iterable[str | pathlib.Path],
    workdir: pathlib.Path | None = None,
) -> str:
    """Execute a command, raise on non-zero exit, and return its stdout.

    Runs a GDAL/OGR command-line tool as a subprocess with proper error
    handling. Captures both stdout and stderr, and raises CommandError
    if the command fails or the executable is missing. The subprocess owns
    any dataset handle it opens, so the handle is released when it exits.

    Args:
        command: Iterable arguments to execute (e.g., ["ogr2ogr", "-f", ...]).
        workdir: Optional working directory for the command execution.

    Returns:
        Text written by the command to standard output.

    Raises:
        CommandError: if the command exits with a non-zero status code or
            cannot be executed, or writes output that is not UTF-8. The
            exception message contains the stderr output from the command.
    """
    args = [str(part) for part in command]
    try:
        result = subprocess.run(
            args,
            cwd=workdir,
            capture_output=True,
            text=True,
            encoding="utf-8",
            check=False,
        )
    except OSError as exc:
        raise CommandError(f"Cannot execute {args[0]}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise CommandError(
            f"{args[0]} wrote output that is not UTF-8: {exc}"
        ) from exc
    if result.returncode != 0:
        raise CommandError(result.stderr.strip() or "Unknown command failure")
    return result.stdout
