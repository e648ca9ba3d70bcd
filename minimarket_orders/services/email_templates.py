"""
Email subjects and HTML bodies for order notifications
"""
from html import escape
from typing import Tuple

from minimarket_orders.config import BrandingConfig
from minimarket_orders.schemas.notification import NotificationJob, NotificationTemplate

STATUS_LABELS = {
    "pending": "Pending",
    "confirmed": "Confirmed",
    "preparing": "Being prepared",
    "shipped": "Shipped",
    "ready_for_pickup": "Ready for pickup",
    "delivered": "Delivered",
    "picked_up": "Picked up",
    "cancelled": "Cancelled",
}


def _layout(branding: BrandingConfig, content: str) -> str:
    color = escape(branding.accent_color or "#2563eb")
    return f"""
<html>
<body style='font-family: Arial, sans-serif;'>
    <h2 style='color: {color};'>{escape(branding.company_name)}</h2>
    {content}
    <hr>
    <p style='color: #666; font-size: 12px;'>This is an automated email, please do not reply.</p>
</body>
</html>"""


def render_email(template: NotificationTemplate, job: NotificationJob, branding: BrandingConfig) -> Tuple[str, str]:
    """Return (subject, html_body) for one notification"""
    order = job.order
    name = escape(order.customer_name)
    number = escape(order.order_number)
    total = f"S/ {order.total:.2f}"
    company = branding.company_name

    if template == NotificationTemplate.CONFIRMATION:
        if order.estimated_delivery:
            verb = "delivery" if order.shipping_method == "delivery" else "pickup"
            eta = f"<p>Estimated {verb} date: <strong>{order.estimated_delivery:%d/%m/%Y}</strong></p>"
        else:
            eta = ""
        subject = f"Order {order.order_number} received - {company}"
        content = f"""
    <p>Dear {name},</p>
    <p>We have received your order <strong>{number}</strong> for a total of <strong>{total}</strong>.</p>
    {eta}
    <p>We will let you know as soon as it is reviewed.</p>"""

    elif template == NotificationTemplate.APPROVAL:
        subject = f"Order {order.order_number} approved - {company}"
        content = f"""
    <p>Dear {name},</p>
    <p>Your order <strong>{number}</strong> has been approved.</p>
    <p>Total: <strong>{total}</strong> ({escape(order.payment_method)})</p>
    <p>Your receipt is attached.</p>"""

    elif template == NotificationTemplate.REJECTION:
        subject = f"Order {order.order_number} rejected - {company}"
        content = f"""
    <p>Dear {name},</p>
    <p>We are sorry, your order <strong>{number}</strong> could not be accepted.</p>
    <p>Reason: {escape(job.reason or '')}</p>"""

    elif template == NotificationTemplate.PAYMENT_VERIFIED:
        subject = f"Payment verified for order {order.order_number} - {company}"
        content = f"""
    <p>Dear {name},</p>
    <p>We have verified your payment of <strong>{total}</strong> for order <strong>{number}</strong>.</p>
    <p>Your receipt is attached.</p>"""

    elif template == NotificationTemplate.STATUS_UPDATE:
        label = STATUS_LABELS.get(order.status, order.status)
        subject = f"Order {order.order_number}: {label} - {company}"
        tracking = ""
        if job.tracking_url:
            url = escape(job.tracking_url, quote=True)
            tracking = f"<p>Track your order: <a href='{url}'>{url}</a></p>"
        content = f"""
    <p>Dear {name},</p>
    <p>Your order <strong>{number}</strong> is now: <strong>{escape(label)}</strong>.</p>
    {tracking}"""

    else:
        raise ValueError(f"Unknown notification template: {template}")

    return subject, _layout(branding, content)
