"""Core modules for stowctl."""

from stowctl.core.auth import (
    AuthManager,
    CachedTokenProvider,
    CallableTokenProvider,
    StaticTokenProvider,
    TokenProvider,
)
from stowctl.core.client import StorageClient
from stowctl.core.config import CONFIG_DIR, CONFIG_FILE, Config, Profile
from stowctl.core.exceptions import (
    AuthenticationError,
    AuthFailure,
    CallCanceledError,
    ConfigurationError,
    NetworkError,
    ObjectNotFoundError,
    PermissionDeniedError,
    RetryExhaustedError,
    ServerResponseError,
    StowCtlError,
    TransportFailure,
    UploadCanceledError,
    ValidationError,
)
from stowctl.core.logging import LogContext, get_audit_logger, setup_logging
from stowctl.core.output import (
    OutputFormat,
    console,
    print_error,
    print_json,
    print_output,
    print_success,
    print_warning,
)
from stowctl.core.validation import (
    validate_bucket,
    validate_chunk_size,
    validate_object_path,
    validate_server_url,
    validate_timeout,
)

__all__ = [
    # Exceptions
    "StowCtlError",
    "ConfigurationError",
    "ValidationError",
    "UploadCanceledError",
    "CallCanceledError",
    "TransportFailure",
    "NetworkError",
    "ServerResponseError",
    "ObjectNotFoundError",
    "RetryExhaustedError",
    "AuthFailure",
    "AuthenticationError",
    "PermissionDeniedError",
    # Validation
    "validate_server_url",
    "validate_bucket",
    "validate_object_path",
    "validate_chunk_size",
    "validate_timeout",
    # Config
    "Config",
    "Profile",
    "CONFIG_DIR",
    "CONFIG_FILE",
    # Client
    "StorageClient",
    # Auth
    "AuthManager",
    "TokenProvider",
    "StaticTokenProvider",
    "CachedTokenProvider",
    "CallableTokenProvider",
    # Output
    "OutputFormat",
    "print_output",
    "print_json",
    "print_error",
    "print_warning",
    "print_success",
    "console",
    # Logging
    "get_audit_logger",
    "setup_logging",
    "LogContext",
]
