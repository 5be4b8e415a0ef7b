from datetime import datetime

import resend
import structlog

import config
from errors import ServiceError

logger = structlog.get_logger(__name__)


def build_otp_email_html(user_name: str, otp: str) -> str:
    return f"""<!DOCTYPE html>
<html lang="en">
  <body style="font-family:Arial,sans-serif;line-height:1.6;color:#333;max-width:600px;margin:0 auto;padding:20px;">
    <h2 style="text-align:center;">Password Reset Request</h2>
    <p>Hello {user_name},</p>
    <p>We received a request to reset your password. Use the following one-time password to continue.</p>
    <div style="border:2px dashed #4a90e2;border-radius:8px;padding:20px;text-align:center;margin:30px 0;">
      <span style="font-size:32px;font-weight:bold;letter-spacing:5px;font-family:'Courier New',monospace;color:#4a90e2;">{otp}</span>
    </div>
    <p>This code expires in <strong>{config.OTP_EXPIRATION_MINUTES} minutes</strong>. Never share it with anyone.</p>
    <p>If you didn't request a password reset, you can safely ignore this email.</p>
    <p style="color:#999;font-size:12px;text-align:center;">&copy; {datetime.now().year} {config.STORE_NAME}. All rights reserved.</p>
  </body>
</html>"""


def send_email(payload: dict) -> str:
    if not config.RESEND_API_KEY:
        logger.error("email_not_configured", to=payload.get("to"))
        raise ServiceError("Failed to send email")
    resend.api_key = config.RESEND_API_KEY
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        logger.error("email_send_failed", to=payload.get("to"), error=str(exc))
        raise ServiceError("Failed to send email") from exc
    message_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
    if not message_id:
        logger.error("email_send_failed", to=payload.get("to"), response=str(response))
        raise ServiceError("Failed to send email")
    logger.info("email_sent", to=payload.get("to"), message_id=message_id)
    return message_id


def send_otp_email(email: str, otp: str, user_name: str = "User") -> str:
    payload = {
        "from": f"{config.STORE_NAME} <{config.EMAIL_FROM}>",
        "to": [email],
        "subject": f"Password Reset OTP - {config.STORE_NAME}",
        "html": build_otp_email_html(user_name, otp),
        "text": f"Your password reset code is {otp}. It expires in {config.OTP_EXPIRATION_MINUTES} minutes.",
    }
    return send_email(payload)
