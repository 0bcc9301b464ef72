"""
=============================================================================
APPLICATION CONFIGURATION
=============================================================================

Centralized configuration for a Sprout application.

=============================================================================
WHAT THE SETTINGS CONTROL
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING SETTINGS                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   case_sensitive_routing                                            │
    │     False (default):  /Users  ==  /users                            │
    │     True:             /Users  !=  /users                            │
    │                                                                      │
    │   strict_routing                                                    │
    │     False (default):  /users/ ==  /users                            │
    │     True:             /users/ !=  /users                            │
    │                                                                      │
    │   trust_proxy                                                       │
    │     False (default):  req.ip = socket peer address                  │
    │     True:             req.ip = first X-Forwarded-For entry          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Routing settings are read during dispatch, so they are frozen together
with the router tree on the first request (see App.seal()).

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    Priority (highest to lowest):

    1. app.set("strict routing", True)      (code, before first request)
    2. SPROUT_STRICT_ROUTING=1              (environment, via from_env())
    3. Default values in this dataclass

=============================================================================
"""

import os
from dataclasses import dataclass, fields
from typing import Optional, Set


_TRUE_VALUES = {"1", "true", "yes", "on"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


@dataclass
class AppConfig:
    """
    Configuration for a Sprout application.

    =========================================================================
    DEVELOPMENT VS PRODUCTION
    =========================================================================

    Development:
        AppConfig()                       # verbose errors, DEBUG-friendly

    Production behind a load balancer:
        AppConfig(
            env="production",             # hide error details from clients
            trust_proxy=True,             # honor X-Forwarded-* headers
            log_level="WARNING",
        )

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # ROUTING
    # ─────────────────────────────────────────────────────────────────────

    case_sensitive_routing: bool = False
    """Treat /Foo and /foo as different paths."""

    strict_routing: bool = False
    """Treat /foo and /foo/ as different paths."""

    # ─────────────────────────────────────────────────────────────────────
    # REQUEST INTERPRETATION
    # ─────────────────────────────────────────────────────────────────────

    trust_proxy: bool = False
    """
    Trust X-Forwarded-For / X-Forwarded-Proto / X-Forwarded-Host.
    Only enable when the app sits behind a proxy you control; otherwise
    clients can spoof their address.
    """

    # ─────────────────────────────────────────────────────────────────────
    # ENVIRONMENT
    # ─────────────────────────────────────────────────────────────────────

    env: str = "development"
    """
    'development' or 'production'. In production the built-in error
    responses never include exception messages.
    """

    x_powered_by: bool = True
    """Send an 'X-Powered-By: Sprout' header on every response."""

    json_spaces: Optional[int] = None
    """Indentation used by res.json(). None = compact output."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Level for the 'sprout' logger hierarchy (see App.setup_logging)."""

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        SPROUT_ENV                      development | production
        SPROUT_CASE_SENSITIVE_ROUTING   1/true/yes/on to enable
        SPROUT_STRICT_ROUTING           1/true/yes/on to enable
        SPROUT_TRUST_PROXY              1/true/yes/on to enable
        SPROUT_LOG_LEVEL                DEBUG | INFO | WARNING | ...

        =====================================================================
        """
        return cls(
            env=os.getenv("SPROUT_ENV", "development"),
            case_sensitive_routing=_env_flag("SPROUT_CASE_SENSITIVE_ROUTING", False),
            strict_routing=_env_flag("SPROUT_STRICT_ROUTING", False),
            trust_proxy=_env_flag("SPROUT_TRUST_PROXY", False),
            log_level=os.getenv("SPROUT_LOG_LEVEL", "INFO"),
        )

    @classmethod
    def field_names(cls) -> Set[str]:
        return {f.name for f in fields(cls)}

    def validate(self) -> None:
        """
        Validate configuration values.

        Called by App at construction time (fail fast).
        """
        if self.env not in ("development", "production"):
            raise ValueError(
                f"Invalid env: {self.env!r}. Must be 'development' or 'production'."
            )

        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level!r}")

        if self.json_spaces is not None and self.json_spaces < 0:
            raise ValueError("json_spaces must be >= 0")
