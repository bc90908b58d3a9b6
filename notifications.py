"""Order notification side channel (best effort, never retried)."""
import logging
import smtplib
from email.message import EmailMessage
from typing import List

import httpx

from config import Settings

logger = logging.getLogger(__name__)


def order_payload(email: str, cart: List[dict], total_price: float) -> dict:
    return {"email": email, "cart": cart, "totalPrice": total_price}


def format_order_email(email: str, cart: List[dict], total_price: float, currency: str = "Dt") -> str:
    lines = [f"New order from {email}", ""]
    for it in cart:
        qty = int(it.get("quantity", 0))
        price = float(it.get("price", 0))
        lines.append(f"- {it.get('name')} x{qty} @ {price:.2f} {currency} = {qty * price:.2f} {currency}")
    lines.append("")
    lines.append(f"Total: {total_price:.2f} {currency}")
    return "\n".join(lines)


def send_order_email(settings: Settings, email: str, cart: List[dict], total_price: float) -> None:
    msg = EmailMessage()
    msg["Subject"] = f"New order from {email}"
    msg["From"] = settings.mail_from or settings.admin_notify_email
    msg["To"] = settings.admin_notify_email
    msg.set_content(format_order_email(email, cart, total_price, settings.currency))

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port) as smtp:
        smtp.starttls()
        if settings.smtp_user:
            smtp.login(settings.smtp_user, settings.smtp_password)
        smtp.send_message(msg)


class OrderNotifier:
    def __init__(self, settings: Settings):
        self.settings = settings

    def notify(self, email: str, cart: List[dict], total_price: float) -> bool:
        if self.settings.notification_url:
            return self._post(email, cart, total_price)
        if self.settings.smtp_enabled:
            try:
                send_order_email(self.settings, email, cart, total_price)
            except (smtplib.SMTPException, OSError) as e:
                logger.error("Error while sending email: %s", e)
                return False
            logger.info("Email sent successfully for order of %s", email)
            return True
        logger.warning("Order notifications are disabled; nothing sent for %s", email)
        return False

    def _post(self, email: str, cart: List[dict], total_price: float) -> bool:
        try:
            response = httpx.post(self.settings.notification_url, json=order_payload(email, cart, total_price))
        except httpx.HTTPError as e:
            logger.error("Error while sending email: %s", e)
            return False
        if response.is_error:
            logger.error("Error sending email: %s %s", response.status_code, response.text[:200])
            return False
        logger.info("Email sent successfully for order of %s", email)
        return True
