"""
Reporting of unexpected exceptions.

Every report is logged. With ``SENTRY_ENABLED`` and a DSN (and the
``sentry`` extra installed) it is also sent to Sentry, tagged with the
caller's user and organization and stripped of credentials and upload
bodies.
"""

from typing import Any

from app.config import settings
from app.core.context import get_request_context
from app.core.logging_config import get_logger

logger = get_logger(__name__)

SCRUBBED_HEADERS = frozenset({"authorization", "cookie", "x-api-key"})


def scrub_event(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any]:
    """Sentry ``before_send`` hook: drop auth headers and request bodies."""
    request = event.get("request") or {}
    headers = request.get("headers")
    if isinstance(headers, dict):
        request["headers"] = {
            name: ("[Filtered]" if name.lower() in SCRUBBED_HEADERS else value)
            for name, value in headers.items()
        }
    # Bodies carry passwords (auth) or file contents (uploads)
    request.pop("data", None)
    return event


class ErrorTracker:
    """Reports unexpected exceptions to the log and, optionally, Sentry."""

    def __init__(self, enabled: bool = False, dsn: str | None = None):
        self.enabled = False
        if enabled and dsn:
            self.enabled = self._init_sentry(dsn)

    def _init_sentry(self, dsn: str) -> bool:
        try:
            import sentry_sdk
            from sentry_sdk.integrations.celery import CeleryIntegration
            from sentry_sdk.integrations.fastapi import FastApiIntegration
            from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
        except ImportError:
            logger.warning("sentry_sdk_not_installed")
            return False

        sentry_sdk.init(
            dsn=dsn,
            environment=settings.environment,
            release=settings.app_version,
            traces_sample_rate=settings.sentry_traces_sample_rate,
            send_default_pii=False,
            before_send=scrub_event,
            integrations=[
                FastApiIntegration(),
                SqlalchemyIntegration(),
                CeleryIntegration(),
            ],
        )
        logger.info("sentry_initialized")
        return True

    def capture_exception(
        self,
        exception: BaseException,
        context: dict[str, Any] | None = None,
    ) -> str | None:
        """
        Log ``exception`` and forward it to Sentry when enabled.

        Returns:
            Sentry event id, or None when not sent
        """
        request_context = get_request_context()
        logger.error(
            "exception_captured",
            exception_type=type(exception).__name__,
            exception=str(exception),
            context=context,
            exc_info=exception,
        )

        if not self.enabled:
            return None

        import sentry_sdk

        try:
            with sentry_sdk.new_scope() as scope:
                for tag in ("user_id", "organization_id", "request_id"):
                    if tag in request_context:
                        scope.set_tag(tag, request_context[tag])
                if context:
                    scope.set_context("filevault", context)
                return sentry_sdk.capture_exception(exception)
        except Exception as e:
            logger.error("error_tracking_failed", error=str(e), original_exception=str(exception))
            return None


error_tracker = ErrorTracker(
    enabled=settings.sentry_enabled,
    dsn=settings.sentry_dsn,
)
