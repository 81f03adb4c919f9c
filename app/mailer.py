import html
import logging
import smtplib
from email.message import EmailMessage

from fastapi import Depends

from .config import Settings, get_settings
from .security import VERIFICATION_CODE_TTL

logger = logging.getLogger(__name__)


class Mailer:
    """
    SMTP sender. send() reports success as a bool and never raises for
    configuration, network or SMTP failures; those are logged instead.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def send(self, to_email: str, subject: str, html_body: str) -> bool:
        s = self.settings

        if s.SMTP_DISABLE:
            logger.warning("[SMTP_DISABLED] email for %s -> %s", to_email, subject)
            return True

        if not s.smtp_configured:
            logger.warning("SMTP env vars not fully set (SMTP_HOST/USER/PASS, EMAIL_FROM); email=%s", to_email)
            return False

        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{s.EMAIL_FROM_NAME} <{s.sender_address}>"
        msg["To"] = to_email
        msg["Reply-To"] = s.sender_address
        msg.set_content("Please view this message in an HTML capable email client.")
        msg.add_alternative(html_body, subtype="html")

        try:
            with smtplib.SMTP(s.SMTP_HOST, s.SMTP_PORT, timeout=15) as smtp:
                smtp.ehlo()
                smtp.starttls()
                smtp.ehlo()
                smtp.login(s.SMTP_USER, s.SMTP_PASS)
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Failed sending email to %s: %s", to_email, e)
            return False

        logger.info("Sent email to %s", to_email)
        return True


def get_mailer(settings: Settings = Depends(get_settings)) -> Mailer:
    return Mailer(settings)


def verification_subject(app_name: str) -> str:
    return f"Verify Your {app_name} Account"


def verification_email_html(code: str, user_name: str, app_name: str) -> str:
    minutes = int(VERIFICATION_CODE_TTL.total_seconds() // 60)
    name = html.escape(user_name) if user_name else "there"
    return f"""
    <p>Hi {name},</p>
    <p>Thanks for registering with {html.escape(app_name)}. Your verification code is:</p>
    <p style="font-size:24px;font-weight:bold;letter-spacing:4px;">{code}</p>
    <p>This code expires in {minutes} minutes.</p>
    <p>If you did not create an account, you can ignore this email.</p>
    """
