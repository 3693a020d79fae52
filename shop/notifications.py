import logging

from anymail.message import AnymailMessage
from django.conf import settings
from django.template.loader import render_to_string

from .models import Contact, Order

logger = logging.getLogger(__name__)

FEED_LIMIT = 10


def _admin_recipients():
    raw_admins = getattr(settings, "SHOP_ADMIN_EMAILS", None)
    if isinstance(raw_admins, str):
        recipients = [e.strip() for e in raw_admins.split(",") if e.strip()]
    elif isinstance(raw_admins, (list, tuple)):
        recipients = [e.strip() for e in raw_admins if e and e.strip()]
    else:
        recipients = []

    seen = set()
    clean = []
    for r in recipients:
        if r.lower() not in seen:
            clean.append(r)
            seen.add(r.lower())
    return clean


def _send_admin_email(subject, template, ctx):
    recipients = _admin_recipients()
    if not recipients:
        logger.debug("No admin recipients configured, skipping %r", subject)
        return False

    plain = render_to_string(f"shop/emails/{template}.txt", ctx)
    html = render_to_string(f"shop/emails/{template}.html", ctx)
    msg = AnymailMessage(
        subject=subject,
        body=plain,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=recipients,
    )
    msg.attach_alternative(html, "text/html")
    msg.send()
    return True


# -------------------------------
# Admin emails
# -------------------------------
def notify_new_order(order_id):
    try:
        order = Order.objects.prefetch_related("items").get(pk=order_id)
        ctx = {
            "order": order,
            "items": order.items.all(),
            "admin_url": f"{settings.FRONTEND_URL}/admin/orders",
        }
        if _send_admin_email(f"Đơn hàng mới #{order.order_code}", "new_order", ctx):
            logger.info("Admin notified of order %s", order.order_code)
    except Exception:
        logger.exception("New order notification failed for order %s", order_id)


def notify_new_contact(contact_id):
    try:
        contact = Contact.objects.get(pk=contact_id)
        if _send_admin_email(f"📩 Tin nhắn liên hệ mới từ {contact.name}", "new_contact", {"contact": contact}):
            logger.info("Admin notified of contact message %s", contact.pk)
    except Exception:
        logger.exception("Contact notification failed for message %s", contact_id)


# -------------------------------
# Admin notification feed
# -------------------------------
def admin_feed():
    """Newest pending orders and unanswered contact messages, merged by time."""
    pending_orders = Order.objects.filter(status__in=Order.PENDING_STATUSES).order_by("-created_at")[:FEED_LIMIT]
    pending_contacts = Contact.objects.filter(status=Contact.STATUS_PENDING).order_by("-created_at")[:FEED_LIMIT]

    notifications = []
    for order in pending_orders:
        notifications.append({
            "id": f"order_{order.pk}",
            "type": "ORDER",
            "title": "Đơn hàng mới!",
            "message": f"Khách hàng {order.customer_name} vừa đặt đơn #{order.order_code}.",
            "time": order.created_at,
            "isRead": False,
            "details": {
                "name": order.customer_name,
                "phone": order.phone,
                "orderCode": str(order.order_code),
                "total": order.total,
            },
        })
    for contact in pending_contacts:
        notifications.append({
            "id": f"contact_{contact.pk}",
            "type": "CONTACT",
            "title": "Tin nhắn liên hệ",
            "message": f"Có lời nhắn mới từ {contact.name}.",
            "time": contact.created_at,
            "isRead": False,
            "details": {
                "name": contact.name,
                "phone": contact.phone,
                "content": contact.message,
            },
        })

    notifications.sort(key=lambda n: n["time"], reverse=True)
    for n in notifications:
        n["time"] = n["time"].isoformat()
    return notifications
