"""Notification dispatcher: retried, per-recipient email delivery.

Runs after the store transaction that changed attendee membership has
committed, outside the request/response cycle. Membership is the source of
truth; an email that never arrives is logged and dropped, it never rolls
anything back and never reaches the HTTP caller.

Each recipient gets its own retry loop (``MAIL_MAX_ATTEMPTS`` attempts with
exponential backoff), so one bad address cannot use up another's attempts.
"""
import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session
from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from event_manager.config import Settings
from event_manager.errors import TransientDeliveryError
from event_manager.models.user import User
from event_manager.notifications.rendering import RenderedMessage, TemplateRenderer
from event_manager.notifications.transport import MailTransport, build_transport
from event_manager.schemas.notification import EventSnapshot

logger = logging.getLogger(__name__)


class NotificationKind(str, enum.Enum):
    invitation = "invitation"
    reminder = "reminder"


@dataclass
class DeliveryResult:
    user_id: str
    email: Optional[str] = None
    attempts: int = 0
    message_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.error is None and self.attempts > 0


@dataclass
class DispatchReport:
    event_id: str
    kind: NotificationKind
    results: list[DeliveryResult] = field(default_factory=list)

    @property
    def delivered(self) -> list[DeliveryResult]:
        return [r for r in self.results if r.delivered]

    @property
    def failed(self) -> list[DeliveryResult]:
        return [r for r in self.results if not r.delivered]


class NotificationDispatcher:
    def __init__(
        self,
        transport: MailTransport,
        session_factory: Callable[[], Session],
        renderer: Optional[TemplateRenderer] = None,
        max_attempts: int = 3,
        backoff_seconds: float = 2.0,
        backoff_max_seconds: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.transport = transport
        self.session_factory = session_factory
        self.renderer = renderer or TemplateRenderer()
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self._sleep = sleep

    def _resolve_recipients(self, user_ids: list[str]) -> dict[str, User]:
        """Look recipients up in a session of our own; the request's is gone by now."""
        session = self.session_factory()
        try:
            users = session.query(User).filter(User.id.in_(user_ids)).all()
            session.expunge_all()
        finally:
            session.close()
        return {user.id: user for user in users}

    def _retrying(self) -> Retrying:
        return Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.backoff_seconds, min=self.backoff_seconds, max=self.backoff_max_seconds
            ),
            retry=retry_if_exception_type(TransientDeliveryError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
        )

    def _deliver(self, to: str, message: RenderedMessage, result: DeliveryResult) -> None:
        try:
            for attempt in self._retrying():
                with attempt:
                    result.attempts = attempt.retry_state.attempt_number
                    logger.debug("Email attempt %d for %s", result.attempts, to)
                    result.message_id = self.transport.send(to, message.subject, message.html, message.text)
        except RetryError as exc:
            last = exc.last_attempt.exception()
            result.error = str(last)
            logger.error(
                "Giving up on email to %s after %d attempt(s): %s", to, result.attempts, last
            )
            return
        logger.info("Email sent to %s (%s)", to, result.message_id)

    def dispatch(
        self,
        event: EventSnapshot,
        recipient_ids: Iterable[str],
        kind: NotificationKind = NotificationKind.invitation,
    ) -> DispatchReport:
        """Send ``kind`` emails about ``event`` to each recipient. Never raises."""
        kind = NotificationKind(kind)
        report = DispatchReport(event_id=event.event_id, kind=kind)
        user_ids = list(dict.fromkeys(recipient_ids))
        if not user_ids:
            return report

        try:
            recipients = self._resolve_recipients(user_ids)
        except Exception:
            logger.exception("Could not load recipients for event %s; no emails sent", event.event_id)
            report.results = [DeliveryResult(user_id=uid, error="recipient lookup failed") for uid in user_ids]
            return report

        for user_id in user_ids:
            result = DeliveryResult(user_id=user_id)
            report.results.append(result)
            user = recipients.get(user_id)
            if user is None:
                result.error = "unknown recipient"
                logger.warning("Skipping %s email for missing user %s", kind.value, user_id)
                continue
            result.email = user.email
            try:
                message = self.renderer.render(kind.value, event, attendee_name=user.name)
                self._deliver(user.email, message, result)
            except Exception as exc:
                # Anything unexpected stays with this recipient.
                result.error = str(exc) or exc.__class__.__name__
                logger.exception("Unexpected failure emailing %s about event %s", user.email, event.event_id)

        logger.info(
            "Dispatched %s for event %s: %d sent, %d failed",
            kind.value, event.event_id, len(report.delivered), len(report.failed),
        )
        return report

    def close(self) -> None:
        self.transport.close()


def build_dispatcher(settings: Settings, session_factory: Callable[[], Session]) -> NotificationDispatcher:
    return NotificationDispatcher(
        transport=build_transport(settings),
        session_factory=session_factory,
        renderer=TemplateRenderer(app_name=settings.MAIL_FROM_NAME),
        max_attempts=settings.MAIL_MAX_ATTEMPTS,
        backoff_seconds=settings.MAIL_BACKOFF_SECONDS,
        backoff_max_seconds=settings.MAIL_BACKOFF_MAX_SECONDS,
    )
