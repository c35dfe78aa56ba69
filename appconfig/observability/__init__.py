from .sentry import SentryConfigError, initialize_sentry, shutdown_sentry

__all__ = [
    "SentryConfigError",
    "initialize_sentry",
    "shutdown_sentry",
]
