"""blossomwatch exception hierarchy.

Provides typed exceptions for the error categories that can surface from a
discovery session. Relay-level failures never reach this hierarchy: they are
absorbed by [query_relay][blossomwatch.utils.protocol.query_relay] and only
show up as fewer discovered servers.

Exception hierarchy:

```text
BlossomWatchError (base -- never raised directly)
├── ConfigurationError      -- bad YAML, invalid settings, empty relay list
├── ConnectivityError       -- relay directory unreachable
│   └── RequestTimeoutError -- directory request timed out
├── ProtocolError           -- unusable directory payload
└── OutputError             -- session output could not be written
```

See Also:
    [Discovery][blossomwatch.services.discovery.Discovery]: Raises
        [ConfigurationError][blossomwatch.core.exceptions.ConfigurationError]
        when no relay is left to query and
        [OutputError][blossomwatch.core.exceptions.OutputError] when the
        report cannot be written.
    [BaseService][blossomwatch.core.base_service.BaseService]: Counts any
        exception raised by ``run()`` as a failed cycle.
"""

from __future__ import annotations


class BlossomWatchError(Exception):
    """Base exception for all blossomwatch errors.

    Never raised directly -- always use a specific subclass.
    """


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(BlossomWatchError):
    """Invalid or missing configuration (YAML, CLI flags, relay lists).

    Fatal: a discovery session that has no relay to query cannot be
    constructed.
    """


# ---------------------------------------------------------------------------
# Connectivity
# ---------------------------------------------------------------------------


class ConnectivityError(BlossomWatchError):
    """Base for network failures outside the per-relay boundary."""


class RequestTimeoutError(ConnectivityError):
    """A bounded network request did not complete in time."""


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class ProtocolError(BlossomWatchError):
    """A remote payload did not have the expected shape."""


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class OutputError(BlossomWatchError):
    """The session report could not be persisted."""
