# Overview: Best-effort transactional email for order events; never raises to its caller.

"""
Notification Dispatcher

WHY: Customers get an email when an order is confirmed, shipped, cancelled or
refunded. Email is a side effect: a mail outage must never fail or roll back
the order transition that triggered it.

CONTRACT:
- notify(kind, summary, recipient) always returns a NotificationResult
- The dispatcher is stateless; "already sent" is checked by the caller
  against the order's notification flags before calling notify()
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from flask import current_app, render_template


EXTENSION_KEY = "storefront.notifier"

KIND_ORDER_CONFIRMED = "order_confirmed"
KIND_SHIPPED = "shipped"
KIND_CANCELLED = "cancelled"
KIND_REFUNDED = "refunded"

NOTIFICATION_KINDS = (KIND_ORDER_CONFIRMED, KIND_SHIPPED, KIND_CANCELLED, KIND_REFUNDED)

NOT_CONFIGURED = "Email service not configured"

SUBJECTS = {
    KIND_ORDER_CONFIRMED: "Order Confirmed - {order_number}",
    KIND_SHIPPED: "Your order {order_number} is on its way",
    KIND_CANCELLED: "Order Cancelled - {order_number}",
    KIND_REFUNDED: "Refund Processed - {order_number}",
}


class MailDeliveryError(Exception):
    """Raised by a mailer when the message was not accepted."""
    pass


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class MailMessage:
    to_email: str
    to_name: str | None
    subject: str
    html: str


class LogMailer:
    """
    Logs messages instead of sending them (no mail credentials configured).

    Nothing is delivered, so every send fails; the notification flag stays
    unsent and resend_notifications picks it up once a provider is set.
    """

    name = "log"

    def send(self, message: MailMessage) -> None:
        current_app.logger.info(
            "[EMAIL LOGGED] to=%s subject=%r (mail delivery not configured)",
            message.to_email,
            message.subject,
        )
        raise MailDeliveryError(NOT_CONFIGURED)


class SendGridMailer:
    """SendGrid Web API v3 over httpx."""

    name = "sendgrid"
    SEND_ENDPOINT = "/v3/mail/send"

    def __init__(
        self,
        api_key: str,
        from_email: str,
        *,
        from_name: str | None = None,
        base_url: str = "https://api.sendgrid.com",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.from_email = from_email
        self.from_name = from_name
        self._client = httpx.Client(
            base_url=base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    def send(self, message: MailMessage) -> None:
        recipient = {"email": message.to_email}
        if message.to_name:
            recipient["name"] = message.to_name
        sender = {"email": self.from_email}
        if self.from_name:
            sender["name"] = self.from_name

        payload = {
            "personalizations": [{"to": [recipient]}],
            "from": sender,
            "subject": message.subject,
            "content": [{"type": "text/html", "value": message.html}],
        }

        try:
            response = self._client.post(self.SEND_ENDPOINT, json=payload)
        except httpx.HTTPError as exc:
            raise MailDeliveryError(f"SendGrid unreachable: {exc}") from exc

        if response.status_code not in (200, 201, 202):
            raise MailDeliveryError(f"SendGrid rejected message: HTTP {response.status_code}")


class NotificationDispatcher:
    def __init__(self, mailer, *, store_name: str = "Storefront"):
        self.mailer = mailer
        self.store_name = store_name

    def render(self, kind: str, summary: dict, recipient: dict) -> MailMessage:
        subject = SUBJECTS[kind].format(order_number=summary.get("order_number", ""))
        html = render_template(
            f"emails/{kind}.html",
            order=summary,
            recipient=recipient,
            store_name=self.store_name,
            subject=subject,
        )
        return MailMessage(
            to_email=recipient["email"],
            to_name=recipient.get("name"),
            subject=subject,
            html=html,
        )

    def notify(self, kind: str, summary: dict, recipient: dict | None) -> NotificationResult:
        """
        Render and send one notification.

        Returns:
            NotificationResult(success=True) when the mailer accepted the
            message, otherwise success=False with the error text.
        """
        order_number = (summary or {}).get("order_number")

        if kind not in NOTIFICATION_KINDS:
            return NotificationResult(False, f"Unknown notification kind: {kind}")

        email = (recipient or {}).get("email")
        if not email:
            current_app.logger.warning("[EMAIL FAILED] kind=%s order=%s: no email address", kind, order_number)
            return NotificationResult(False, "No email address provided")

        try:
            message = self.render(kind, summary, recipient)
            self.mailer.send(message)
        except Exception as exc:
            current_app.logger.warning(
                "[EMAIL FAILED] kind=%s order=%s to=%s: %s", kind, order_number, email, exc
            )
            return NotificationResult(False, str(exc) or exc.__class__.__name__)

        current_app.logger.info("[EMAIL SENT] kind=%s order=%s to=%s", kind, order_number, email)
        return NotificationResult(True)


def init_app(app) -> NotificationDispatcher:
    api_key = app.config.get("SENDGRID_API_KEY")
    store_name = app.config.get("STORE_NAME", "Storefront")
    if api_key:
        mailer = SendGridMailer(api_key, app.config.get("MAIL_FROM"), from_name=store_name)
    else:
        app.logger.warning("Email credentials not configured. Emails will be logged only.")
        mailer = LogMailer()

    dispatcher = NotificationDispatcher(mailer, store_name=store_name)
    app.extensions[EXTENSION_KEY] = dispatcher
    return dispatcher


def get_dispatcher() -> NotificationDispatcher:
    return current_app.extensions[EXTENSION_KEY]
