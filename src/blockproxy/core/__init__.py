"""Core."""

from .addr import (
    join_host_port,
    normalize_target,
    resolve_dial_address,
    same_host_port,
    split_host_port,
)
from .config import (
    ProxyConfig,
    ProxySettings,
    clear_settings,
    flatten_config,
    get_settings,
    load_config_from_file,
)
from .exceptions import (
    AddressError,
    AuthorityMismatchError,
    DialError,
    HeaderTooLargeError,
    HijackUnsupportedError,
    MalformedRequestError,
    MethodNotAllowedError,
    ProxyError,
)

__all__ = [
    "AddressError",
    "AuthorityMismatchError",
    "DialError",
    "HeaderTooLargeError",
    "HijackUnsupportedError",
    "MalformedRequestError",
    "MethodNotAllowedError",
    "ProxyConfig",
    "ProxyError",
    "ProxySettings",
    "clear_settings",
    "flatten_config",
    "get_settings",
    "join_host_port",
    "load_config_from_file",
    "normalize_target",
    "resolve_dial_address",
    "same_host_port",
    "split_host_port",
]
