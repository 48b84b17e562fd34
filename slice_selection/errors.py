# File location: nssf/slice_selection/errors.py
# Typed failures raised by the slice selection core and its collaborators

from typing import Dict, List, Optional

import httpx
from pymongo.errors import (
    AutoReconnect,
    ConnectionFailure,
    NetworkTimeout,
    PyMongoError,
    ServerSelectionTimeoutError,
)


class NssfError(Exception):
    """Base class of every error the NSSF surfaces to its callers"""

    def __init__(self, message: str, original_error: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class DatabaseError(NssfError):
    """Configuration store failure; connectivity failures are retryable by the client"""

    def __init__(
        self,
        message: str,
        original_error: Optional[BaseException] = None,
        is_connection_error: bool = False,
    ):
        super().__init__(message, original_error)
        self.is_connection_error = is_connection_error


class NrfError(NssfError):
    """NRF discovery or token endpoint failure"""

    def __init__(
        self,
        message: str,
        original_error: Optional[BaseException] = None,
        is_timeout: bool = False,
        nrf_uri: Optional[str] = None,
    ):
        super().__init__(message, original_error)
        self.is_timeout = is_timeout
        self.nrf_uri = nrf_uri


class SelectionError(NssfError):
    """Unexpected failure while computing a slice selection decision"""


class ValidationError(NssfError):
    """Malformed request parameters, reported as (param, reason) pairs"""

    def __init__(self, invalid_params: List[Dict[str, str]], cause: str = "INVALID_QUERY_PARAM"):
        super().__init__(f"{len(invalid_params)} invalid parameter(s)")
        self.invalid_params = invalid_params
        self.cause = cause


class NotFoundError(NssfError):
    """Unknown NSSAI availability subscription or NF availability report"""

    def __init__(self, message: str, cause: str = "RESOURCE_NOT_FOUND"):
        super().__init__(message)
        self.cause = cause


_CONNECTION_ERRORS =(ConnectionFailure, ServerSelectionTimeoutError, NetworkTimeout, AutoReconnect)


def handle_database_error(error: BaseException) -> DatabaseError:
    """Reclassify a store exception; the caller re-raises the result"""
    if isinstance(error, DatabaseError):
        return error
    if isinstance(error, _CONNECTION_ERRORS):
        return DatabaseError(f"Database operation failed: {error}", error, is_connection_error=True)
    if isinstance(error, PyMongoError):
        return DatabaseError(f"Database operation failed: {error}", error)
    return DatabaseError(f"Unexpected database error: {error}", error)


def handle_nrf_error(error: BaseException, nrf_uri: Optional[str] = None) -> NrfError:
    if isinstance(error, NrfError):
        return error
    if isinstance(error, httpx.TimeoutException):
        return NrfError(f"NRF request timed out: {error}", error, is_timeout=True, nrf_uri=nrf_uri)
    return NrfError(f"NRF communication failed: {error}", error, nrf_uri=nrf_uri)
