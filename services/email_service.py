"""
Email notifications to complaint owners.
Uses fastapi-mail; messages are sent from FastAPI background tasks.
"""
from html import escape
from typing import Optional, TYPE_CHECKING

from core.logger import logger
import config

if TYPE_CHECKING:
    from fastapi_mail import FastMail


def _wrap(title: str, body_html: str) -> str:
    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
            <h2 style="color: #3498db;">{escape(config.SMTP_FROM_NAME)}</h2>
            <h3>{escape(title)}</h3>
            {body_html}
            <p style="color: #666; font-size: 12px;">You are receiving this because you filed this complaint.</p>
        </div>
    </body>
    </html>
    """


class EmailService:
    """Service for sending complaint notifications via fastapi-mail."""

    @staticmethod
    async def send_html(fm: Optional["FastMail"], to_email: str, subject: str, html_body: str) -> bool:
        """
        Send an HTML email.

        Args:
            fm: FastMail instance (from request.app.state.mail); None disables sending
            to_email: Recipient email address
            subject: Email subject
            html_body: HTML body

        Returns:
            True if sent successfully, False otherwise
        """
        if fm is None:
            logger.debug(f"Mail not configured; skipped '{subject}' to {to_email}")
            return False

        from fastapi_mail import MessageSchema, MessageType

        message = MessageSchema(
            subject=subject,
            recipients=[to_email],
            body=html_body,
            subtype=MessageType.html,
        )
        try:
            await fm.send_message(message)
            logger.info(f"Email '{subject}' sent to {to_email}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email to {to_email}: {e}", exc_info=True)
            return False

    @staticmethod
    async def send_response_notification(
        fm: Optional["FastMail"],
        to_email: str,
        complaint_id: int,
        complaint_subject: str,
        responder_name: str,
        response_text: str
    ) -> bool:
        """Tell the owner a new public response was posted on their complaint."""
        subject = f"New response on your complaint #{complaint_id}"
        body = (
            f"<p>{escape(responder_name)} responded to <strong>{escape(complaint_subject)}</strong>:</p>"
            f'<blockquote style="border-left: 3px solid #ddd; padding-left: 10px;">{escape(response_text)}</blockquote>'
        )
        return await EmailService.send_html(fm, to_email, subject, _wrap(subject, body))

    @staticmethod
    async def send_resolved_notification(
        fm: Optional["FastMail"],
        to_email: str,
        complaint_id: int,
        complaint_subject: str
    ) -> bool:
        """Tell the owner their complaint was marked resolved."""
        subject = f"Your complaint #{complaint_id} has been resolved"
        body = f"<p>Your complaint <strong>{escape(complaint_subject)}</strong> has been marked as resolved.</p>"
        return await EmailService.send_html(fm, to_email, subject, _wrap(subject, body))
