"""
SendGrid email service for BizFlow Pro
- Automation emails (SEND_EMAIL workflow action)
- VIP welcome email (order trigger)
"""

import os
import logging
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content

logger = logging.getLogger("email_service")

# Configuration
SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY', '')
SENDER_EMAIL = os.environ.get('SENDER_EMAIL', 'noreply@bizflow.local')
SENDER_NAME = os.environ.get('SENDER_NAME', 'BizFlow Pro')


class EmailService:
    """Central email sender"""

    def __init__(self, api_key: str = None, sender: str = None):
        self.api_key = SENDGRID_API_KEY if api_key is None else api_key
        self.sender = sender or SENDER_EMAIL

    def send_email(self, to_email: str, subject: str, html_content: str) -> bool:
        """Send one email via SendGrid. Returns False instead of raising."""
        if not self.api_key:
            logger.error("SENDGRID_API_KEY not configured")
            return False

        if not to_email:
            logger.error(f"No recipient for email: {subject}")
            return False

        try:
            message = Mail(
                from_email=Email(self.sender, SENDER_NAME),
                to_emails=To(to_email),
                subject=subject,
                html_content=Content("text/html", html_content)
            )

            sg = SendGridAPIClient(self.api_key)
            response = sg.send(message)

            if response.status_code in [200, 202]:
                logger.info(f"Email sent to {to_email}: {subject}")
                return True
            else:
                logger.error(f"Email send error: {response.status_code}")
                return False

        except Exception as e:
            logger.error(f"Email send exception: {str(e)}")
            return False

    # ==================== TEMPLATES ====================

    def send_vip_welcome(self, contact: dict) -> bool:
        """VIP follow-up after a purchase pushes the score over the threshold"""
        name = contact.get("name") or "there"
        subject = "Welcome to our VIP customers"
        html_content = f"""
        <!DOCTYPE html>
        <html>
        <body style="font-family: Arial, sans-serif; background-color: #f5f5f5; padding: 20px;">
            <div style="max-width: 600px; margin: 0 auto; background: white; border-radius: 8px; padding: 30px;">
                <h2 style="color: #1E40AF;">Thank you, {name}!</h2>
                <p>Your recent orders make you one of our most valued customers.</p>
                <p>Our team will reach out shortly with your VIP benefits.</p>
            </div>
        </body>
        </html>
        """
        return self.send_email(contact.get("email", ""), subject, html_content)


# Global instance
email_service = EmailService()
