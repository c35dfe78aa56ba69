from __future__ import annotations

import logging

import sentry_sdk

from appconfig.config import settings


logger = logging.getLogger(__name__)


class SentryConfigError(RuntimeError):
    pass


_sentry_initialized = False


def sentry_enabled() -> bool:
    return bool((settings.SENTRY_DSN or "").strip())


def initialize_sentry() -> None:
    global _sentry_initialized

    if _sentry_initialized:
        return

    if not sentry_enabled():
        _sentry_initialized = True
        logger.info("Sentry error reporting disabled", extra={"environment": settings.ENVIRONMENT})
        return

    sample_rate = float(settings.SENTRY_TRACES_SAMPLE_RATE)
    if sample_rate < 0 or sample_rate > 1:
        raise SentryConfigError("SENTRY_TRACES_SAMPLE_RATE must be between 0 and 1.")

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=sample_rate,
        release=settings.SENTRY_RELEASE,
        environment=settings.ENVIRONMENT,
        send_default_pii=False,
    )
    _sentry_initialized = True
    logger.info(
        "Sentry error reporting enabled",
        extra={"environment": settings.ENVIRONMENT, "traces_sample_rate": sample_rate},
    )


def shutdown_sentry() -> None:
    global _sentry_initialized

    if not _sentry_initialized:
        return
    client = sentry_sdk.get_client()
    if client.is_active():
        client.flush(timeout=2.0)
    _sentry_initialized = False
