import base64
import logging
import mimetypes
from pathlib import Path
from typing import Optional, Sequence

import sendgrid
from sendgrid.helpers.mail import (
    Mail, Email, To, Attachment, FileContent, FileName, FileType, Disposition
)
from src.core.config import settings

logger = logging.getLogger(__name__)

class EmailClient:
    def __init__(self):
        self.api_key = settings.sendgrid_api_key
        self.from_email = settings.sendgrid_from_email
        if not self.api_key:
            logger.warning("SENDGRID_API_KEY not set. Emailing will be disabled.")
            self.sg = None
        else:
            self.sg = sendgrid.SendGridAPIClient(api_key=self.api_key)

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        attachments: Optional[Sequence[str]] = None,
    ) -> bool:
        """
        Send an HTML email, optionally attaching files from disk.

        Returns True when the provider accepted the message.
        """
        if not self.sg:
            names = ", ".join(Path(p).name for p in attachments or [])
            logger.info(f"[MOCK EMAIL] To: {to_email} | Subject: {subject} | Attachments: {names or 'none'}")
            return True

        mail = Mail(
            from_email=Email(self.from_email or "noreply@htd-system.com"),
            to_emails=To(to_email),
            subject=subject,
            html_content=html_content,
        )
        for path in attachments or []:
            mail.add_attachment(self._build_attachment(Path(path)))

        try:
            response = self.sg.client.mail.send.post(request_body=mail.get())
            logger.info(f"Email sent to {to_email}. Status: {response.status_code}")
            return response.status_code in (200, 201, 202)
        except Exception as e:
            logger.error(f"Failed to send email: {e}")
            return False

    @staticmethod
    def _build_attachment(path: Path) -> Attachment:
        encoded = base64.b64encode(path.read_bytes()).decode()
        mime_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        return Attachment(
            FileContent(encoded),
            FileName(path.name),
            FileType(mime_type),
            Disposition("attachment"),
        )

# Singleton instance
email_client = EmailClient()
