"""Delivers generated report artifacts to the recipients of a scheduled report."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from src.core.config import settings
from src.core.notifications import EmailClient, email_client
from src.notifications.database import NotificationPriority, NotificationType
from src.notifications.service import NotificationService, notification_service
from src.reporting.database import DeliveryMethod, ScheduledReportModel
from src.reporting.errors import DeliveryFailed
from .generators.base import Artifact

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    user_id: Optional[int]
    email: Optional[str]
    method: str
    success: bool
    error: Optional[str] = None


def download_url(report_id: int) -> str:
    return f"/reports/download/{report_id}"


def report_url(report_id: int) -> str:
    return f"/reports/scheduled/{report_id}"


def _method(recipient: Dict[str, Any]) -> DeliveryMethod:
    raw = (recipient.get("delivery_method") or DeliveryMethod.EMAIL.value)
    try:
        return DeliveryMethod(str(raw).upper())
    except ValueError:
        logger.warning(f"Unknown delivery method {raw!r} for {recipient.get('email')}; using EMAIL")
        return DeliveryMethod.EMAIL


class DeliveryDispatcher:
    """
    Sends an artifact to every recipient.

    Each recipient is handled on its own: a failure is logged and reported in
    the result list, and the remaining recipients are still served.
    """

    def __init__(
        self,
        mailer: Optional[EmailClient] = None,
        notifications: Optional[NotificationService] = None,
    ):
        self.mailer = mailer or email_client
        self.notifications = notifications or notification_service

    async def deliver(
        self,
        report: ScheduledReportModel,
        artifact: Artifact,
        template_name: Optional[str] = None,
    ) -> List[DeliveryResult]:
        results: List[DeliveryResult] = []
        template_name = template_name or report.name

        for recipient in report.recipients or []:
            email = recipient.get("email")
            if not email:
                logger.warning(f"Skipping recipient without email on scheduled report {report.id}: {recipient}")
                continue

            method = _method(recipient)
            if method in (DeliveryMethod.EMAIL, DeliveryMethod.BOTH):
                results.append(await self._attempt(
                    recipient, DeliveryMethod.EMAIL, self._send_email(report, artifact, recipient, template_name)
                ))
            if method in (DeliveryMethod.DOWNLOAD_LINK, DeliveryMethod.BOTH):
                results.append(await self._attempt(
                    recipient, DeliveryMethod.DOWNLOAD_LINK, self._send_download_link(report, artifact, recipient)
                ))

        failed = sum(1 for r in results if not r.success)
        logger.info(
            f"Delivered scheduled report {report.id} '{report.name}': "
            f"{len(results) - failed} succeeded, {failed} failed"
        )
        return results

    async def _attempt(self, recipient: Dict[str, Any], method: DeliveryMethod, action) -> DeliveryResult:
        email = recipient.get("email")
        try:
            await action
            return DeliveryResult(recipient.get("user_id"), email, method.value, True)
        except Exception as e:
            failure = e if isinstance(e, DeliveryFailed) else DeliveryFailed(email, method.value, str(e))
            logger.error(str(failure))
            return DeliveryResult(recipient.get("user_id"), email, method.value, False, failure.reason)

    async def _send_email(
        self,
        report: ScheduledReportModel,
        artifact: Artifact,
        recipient: Dict[str, Any],
        template_name: str,
    ):
        subject = f"Scheduled Report: {report.name}"
        html = render_email_body(report, artifact, recipient, template_name)
        sent = await asyncio.to_thread(
            self.mailer.send_email, recipient["email"], subject, html, [str(artifact.path)]
        )
        if not sent:
            raise DeliveryFailed(recipient["email"], DeliveryMethod.EMAIL.value, "mail transport rejected the message")

    async def _send_download_link(self, report: ScheduledReportModel, artifact: Artifact, recipient: Dict[str, Any]):
        user_id = recipient.get("user_id")
        if not user_id:
            raise DeliveryFailed(recipient.get("email"), DeliveryMethod.DOWNLOAD_LINK.value, "recipient has no user_id")
        await self.notifications.create_notification(
            recipient_id=user_id,
            type=NotificationType.SYSTEM_ALERT.value,
            title=f"Report Ready: {report.name}",
            message=f"Your scheduled report '{report.name}' is ready for download.",
            priority=NotificationPriority.MEDIUM.value,
            channels={"email": {"enabled": False}, "in_app": {"enabled": True}},
            action_url=download_url(report.id),
            metadata={"report_path": str(artifact.path), "format": artifact.format.value},
            recipient_email=recipient.get("email"),
        )


def render_email_body(
    report: ScheduledReportModel,
    artifact: Artifact,
    recipient: Dict[str, Any],
    template_name: str,
) -> str:
    greeting = recipient.get("name") or recipient.get("email")
    return f"""
    <h2>Scheduled Report: {report.name}</h2>
    <p>Hello {greeting},</p>
    <p>Please find attached your scheduled report.</p>
    <ul>
        <li><b>Report:</b> {report.name}</li>
        <li><b>Template:</b> {template_name}</li>
        <li><b>Format:</b> {artifact.format.value}</li>
        <li><b>Generated:</b> {artifact.generated_at.strftime('%Y-%m-%d %H:%M:%S')} UTC</li>
        <li><b>Records:</b> {artifact.record_count}</li>
    </ul>
    <p><i>Sent by {settings.system_name}</i></p>
    """
