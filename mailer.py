"""
Transactional email through Resend.

Every sender returns an ``(ok, error)`` tuple and never raises: emails are
best effort and a failed send must not fail the request that triggered it.
"""
import logging
from html import escape
from typing import Dict, Optional, Tuple

import resend

import config

logger = logging.getLogger(__name__)

SendResult = Tuple[bool, Optional[str]]

_BODY_STYLE = ("margin: 0; padding: 32px 16px; font-family: 'Helvetica Neue', Helvetica, Arial, sans-serif; "
               "color: #111111; background-color: #ffffff;")
_CARD_STYLE = ("max-width: 600px; margin: 0 auto; background-color: #ffffff; border: 1px solid #e5e5e5; "
               "border-radius: 16px; padding: 32px;")
_P_STYLE = "margin: 0 0 12px; font-size: 14px; line-height: 1.7; color: #2f2f2f;"
_BUTTON_STYLE = ("display: inline-block; margin-top: 20px; padding: 12px 18px; border: 1px solid #111111; "
                 "border-radius: 999px; color: #111111; text-decoration: none; font-size: 14px; font-weight: 600;")


def _text(value) -> str:
    """Escape a user-supplied value for the HTML body."""
    return escape(str(value)) if value is not None else ""


def _layout(title: str, paragraphs, cta_label: str, cta_url: str, extra: str = "") -> str:
    body = "".join(f'<p style="{_P_STYLE}">{p}</p>' for p in paragraphs)
    return f"""<!DOCTYPE html>
<html>
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
  </head>
  <body style="{_BODY_STYLE}">
    <div style="{_CARD_STYLE}">
      <div style="font-size: 12px; letter-spacing: 0.28em; text-transform: uppercase; color: #6b6b6b;">{config.COMPANY_NAME}</div>
      <h1 style="margin: 16px 0 12px; font-size: 22px; font-weight: 600;">{title}</h1>
      {body}
      {extra}
      <a href="{cta_url}" style="{_BUTTON_STYLE}">{cta_label}</a>
    </div>
  </body>
</html>"""


def _details_box(*lines: str) -> str:
    rows = "".join(f'<p style="margin: 0 0 6px; font-size: 13px; line-height: 1.6; color: #2f2f2f;">{line}</p>'
                   for line in lines)
    return f'<div style="margin-top: 16px; padding: 12px 14px; border: 1px solid #e5e5e5; border-radius: 12px;">{rows}</div>'


def send_email(to: str, subject: str, html: str) -> SendResult:
    if not config.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not configured. Skipping email %r to %s", subject, to)
        return False, "Email service not configured"

    payload: Dict[str, object] = {
        "from": f"{config.COMPANY_NAME} <{config.EMAIL_FROM}>",
        "to": [to],
        "subject": subject,
        "html": html,
    }
    resend.api_key = config.RESEND_API_KEY
    try:
        response = resend.Emails.send(payload)
    except Exception as exc:
        logger.error("Failed to send email %r to %s: %s", subject, to, exc)
        return False, str(exc)

    email_id = response.get("id") if isinstance(response, dict) else getattr(response, "id", None)
    if not email_id:
        logger.error("Unexpected Resend response for %r: %s", subject, response)
        return False, str(response)

    logger.info("Email %r sent to %s (%s)", subject, to, email_id)
    return True, None


def send_welcome_email(to: str, first_name: str) -> SendResult:
    html = _layout(
        f"Welcome, {_text(first_name)}",
        [
            "You've joined something deliberate.",
            "Every piece in our collection carries intention.",
            "As you shop, you'll earn fragment points. Collect them, unlock rewards, "
            "and become part of the Oiko story.",
            f"Your account: {_text(to)}",
        ],
        "Explore collection",
        f"{config.APP_URL}/products",
    )
    return send_email(to, "Welcome to Oiko", html)


def send_order_confirmation_email(to: str, order_ref: str, order_points: int,
                                  order_url: Optional[str] = None) -> SendResult:
    html = _layout(
        "Your order is in motion",
        [
            "Thank you for choosing Oiko.",
            "Your piece has been received.",
            f"This order added +{order_points} fragments to your journey.",
            "We'll let you know when it moves forward.",
        ],
        "View order",
        order_url or f"{config.APP_URL}/account",
    )
    return send_email(to, f"Order {order_ref} confirmed", html)


def send_order_shipped_email(to: str, order_ref: str, tracking_number: Optional[str] = None,
                             tracking_url: Optional[str] = None) -> SendResult:
    extra = ""
    if tracking_number:
        extra = _details_box(f"Order #: {_text(order_ref)}", f"Tracking: {_text(tracking_number)}")
    html = _layout(
        "Your order is on its way",
        [
            "Your order has left our hands.",
            "It's moving toward you now.",
            "We'll notify you once it arrives.",
        ],
        "Track order",
        escape(tracking_url) if tracking_url else f"{config.APP_URL}/account",
        extra,
    )
    return send_email(to, "Your order is on its way", html)


def send_order_delivered_email(to: str, order_ref: str) -> SendResult:
    html = _layout(
        "Delivered",
        [
            "Your order has arrived.",
            "Each order forms a fragment.",
        ],
        "View rewards journey",
        f"{config.APP_URL}/rewards",
        _details_box(f"Order #: {_text(order_ref)}"),
    )
    return send_email(to, "Delivered", html)


def send_birthday_email(to: str, first_name: str, points_awarded: int) -> SendResult:
    html = _layout(
        f"Happy birthday, {_text(first_name)}",
        [
            "Today is yours.",
            f"We've added {points_awarded} fragment points to your account.",
        ],
        "See your rewards",
        f"{config.APP_URL}/rewards",
    )
    return send_email(to, "A birthday gift from Oiko", html)


def send_password_reset_email(to: str, first_name: str, reset_url: str) -> SendResult:
    html = _layout(
        "Reset your password",
        [
            f"Hi {_text(first_name)},",
            "We received a request to reset your password. The link below expires in one hour.",
            "If you didn't ask for this, you can ignore this email.",
        ],
        "Reset password",
        reset_url,
    )
    return send_email(to, "Reset your OIKO password", html)
