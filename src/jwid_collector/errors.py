"""Failure taxonomy for the search-and-extract engine."""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    MISSING_TITLE = 'missing-title'
    FORM_NOT_FOUND = 'form-not-found'
    RESULT_TABLE_NOT_FOUND = 'result-table-not-found'
    DETAIL_TABLE_NOT_FOUND = 'detail-table-not-found'
    NETWORK_OR_TIMEOUT = 'network-or-timeout'
    REGISTRY_UNAVAILABLE = 'registry-unavailable'
    PARSE_FAILURE = 'parse-failure'


class CollectorError(Exception):
    """Base class; ``kind`` tells callers which recovery policy applies."""

    kind: ErrorKind = ErrorKind.PARSE_FAILURE


class MissingTitleError(CollectorError):
    kind = ErrorKind.MISSING_TITLE


class FormNotFoundError(CollectorError):
    kind = ErrorKind.FORM_NOT_FOUND


class ResultTableNotFoundError(CollectorError):
    kind = ErrorKind.RESULT_TABLE_NOT_FOUND


class DetailTableNotFoundError(CollectorError):
    kind = ErrorKind.DETAIL_TABLE_NOT_FOUND


class RegistryTimeoutError(CollectorError):
    kind = ErrorKind.NETWORK_OR_TIMEOUT


class RegistryUnavailableError(CollectorError):
    """The registry cannot be reached or the browser cannot start.

    Environment-level: aborts the whole job.
    """

    kind = ErrorKind.REGISTRY_UNAVAILABLE


class JobAlreadyRunningError(RuntimeError):
    """A second job was submitted while the worker is still alive."""


class ExportFilenameError(ValueError):
    """License code / year-month / suffix violate the submission convention."""
