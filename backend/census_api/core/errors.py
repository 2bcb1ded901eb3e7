"""Error taxonomy for boundary data loading.

Every failure the cache or its producers can raise derives from
BoundaryDataError, which carries the HTTP status code and the public
``error`` message the API returns, plus an optional ``details`` string
describing the underlying cause.

Example:
    Raise and render a not-found error:
        >>> from census_api.core import errors
        >>> exc = errors.KeyNotFoundError(
        ...     "Municipality data not found",
        ...     details="No dataset for department code '99'",
        ... )
        >>> exc.to_payload()
        {'error': 'Municipality data not found',
         'details': "No dataset for department code '99'"}
"""

from __future__ import annotations


class BoundaryDataError(RuntimeError):
    """Base class for failures surfaced at the request boundary.

    Attributes:
        status_code: HTTP status the failure maps to.
        error: Public, stable error message.
        details: Optional human-readable cause.
    """

    status_code = 500
    default_error = "Boundary data unavailable"

    def __init__(
        self,
        error: str | None = None,
        *,
        details: str | None = None,
    ) -> None:
        self.error = error or self.default_error
        self.details = details
        super().__init__(
            f"{self.error}: {details}" if details else self.error
        )

    def to_payload(self) -> dict[str, str]:
        """Render the error as the JSON body returned to API consumers."""
        payload = {"error": self.error}
        if self.details:
            payload["details"] = self.details
        return payload


class DatasetOpenError(BoundaryDataError):
    """The dataset is missing, corrupt, or not readable by GDAL."""

    default_error = "Failed to open dataset"


class LayerReadError(BoundaryDataError):
    """Reading the features of the selected layer failed."""

    default_error = "Failed to read dataset layer"


class RemoteUnavailableError(BoundaryDataError):
    """The remote object store could not deliver the dataset.

    Attributes:
        status: HTTP status returned by the remote, None for transport
            failures such as timeouts or refused connections.
    """

    default_error = "Remote dataset unavailable"

    def __init__(
        self,
        error: str | None = None,
        *,
        details: str | None = None,
        status: int | None = None,
    ) -> None:
        super().__init__(error, details=details)
        self.status = status


class KeyNotFoundError(BoundaryDataError):
    """No local dataset and no remote fallback exists for the key."""

    status_code = 404
    default_error = "Data not found"
