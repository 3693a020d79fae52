"""
Order workflow: checkout, admin approval/cancellation, payment callbacks and
guest tracking.

Stock is only ever decremented in ``approve_order``, inside the same
transaction that re-checks availability and flips the order status.
"""
import logging
import random
import time
from collections import OrderedDict
from datetime import timedelta

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from .exceptions import (
    InsufficientStock,
    InvalidTransition,
    NotFound,
    OrderAlreadyProcessed,
    PaymentGatewayError,
    RateLimited,
    ValidationFailed,
)
from .models import Order, OrderItem, ProductVariant
from .payments import CheckoutItem
from .shop_utils import clean_str, parse_int

logger = logging.getLogger(__name__)

ORDER_CODE_ATTEMPTS = 5


def generate_order_code():
    """
    12 digits: the last 9 of the millisecond clock plus 3 random ones.
    Stays far below 2**53 so JSON/JS consumers never lose precision.
    """
    millis = str(int(time.time() * 1000))[-9:]
    return int(millis + str(random.randint(0, 999)).zfill(3))


def _parse_cart(items):
    """Collapse cart lines into {variant_id: quantity}, keeping first-seen order."""
    if not isinstance(items, list) or not items:
        raise ValidationFailed("Giỏ hàng trống.")
    quantities = OrderedDict()
    for line in items:
        if not isinstance(line, dict):
            raise ValidationFailed("Dữ liệu giỏ hàng không hợp lệ.")
        variant_id = parse_int(line.get("variantId") or line.get("id"), "variantId")
        quantity = parse_int(line.get("quantity", 1), "quantity")
        if quantity < 1:
            raise ValidationFailed("Số lượng sản phẩm phải lớn hơn 0.")
        quantities[variant_id] = quantities.get(variant_id, 0) + quantity
    return quantities


def _check_recent_order(phone):
    seconds = settings.SHOP_ORDER_DEBOUNCE_SECONDS
    window = timedelta(seconds=seconds)
    if Order.objects.filter(phone=phone, created_at__gte=timezone.now() - window).exists():
        logger.warning("Rejected repeated order from phone %s", phone)
        raise RateLimited(f"Thao tác quá nhanh, vui lòng đợi {seconds}s rồi thử lại.")


# -------------------------------
# CREATE
# -------------------------------
def create_order(*, customer_name, phone, address, payment_method, items, gateway, user=None):
    phone = clean_str(phone, "phone")
    customer_name = clean_str(customer_name, "fullName")
    address = clean_str(address, "address")
    if not phone:
        raise ValidationFailed("Vui lòng nhập số điện thoại.")
    if payment_method not in (Order.PAYMENT_COD, Order.PAYMENT_PAYOS):
        raise ValidationFailed("Phương thức thanh toán không hợp lệ.")
    quantities = _parse_cart(items)

    logger.info("Creating order for %s (%s)", customer_name, phone)
    _check_recent_order(phone)

    variants = ProductVariant.objects.select_related("product").in_bulk(list(quantities))
    total = 0
    order_items = []
    for variant_id, quantity in quantities.items():
        variant = variants.get(variant_id)
        if variant is None:
            raise NotFound(f"Sản phẩm (ID: {variant_id}) không tồn tại trong hệ thống.")
        if variant.stock < quantity:
            raise InsufficientStock(
                f'Sản phẩm "{variant.product.name}" chỉ còn {variant.stock} sản phẩm, '
                f'không đủ cho đơn hàng của bạn.'
            )
        total += variant.price * quantity
        order_items.append(OrderItem(
            variant=variant,
            product_name=variant.product.name,
            quantity=quantity,
            price=variant.price,
        ))

    status = Order.STATUS_PENDING_COD if payment_method == Order.PAYMENT_COD else Order.STATUS_PENDING_PAYOS
    order = _save_order(
        user=user,
        customer_name=customer_name,
        phone=phone,
        address=address,
        total=total,
        payment_method=payment_method,
        status=status,
        items=order_items,
    )
    logger.info("Saved order #%s (code %s), total %s", order.pk, order.order_code, total)

    if payment_method == Order.PAYMENT_PAYOS:
        _attach_checkout_link(order, gateway)

    # only orders that can still be paid or delivered reach the admin inbox
    from .notifications import notify_new_order
    transaction.on_commit(lambda: notify_new_order(order.pk))
    return order


def _save_order(*, items, **fields):
    for attempt in range(ORDER_CODE_ATTEMPTS):
        try:
            with transaction.atomic():
                order = Order.objects.create(order_code=generate_order_code(), **fields)
                for item in items:
                    item.order = order
                OrderItem.objects.bulk_create(items)
            return order
        except IntegrityError:
            if attempt == ORDER_CODE_ATTEMPTS - 1:
                raise
            logger.warning("Order code collision, retrying (attempt %s)", attempt + 1)


def _attach_checkout_link(order, gateway):
    if gateway is None:
        _cancel_unpaid(order)
        raise PaymentGatewayError()
    items = [CheckoutItem(name=item.product_name, quantity=item.quantity, price=item.price)
             for item in order.items.all()]
    try:
        checkout_url = gateway.create_checkout_link(
            order_code=order.order_code,
            amount=order.total,
            description=f"TT Don Hang #{order.order_code}",
            items=items,
            cancel_url=f"{settings.FRONTEND_URL}/cart",
            return_url=f"{settings.FRONTEND_URL}/order/success",
        )
    except PaymentGatewayError:
        _cancel_unpaid(order)
        raise
    order.checkout_url = checkout_url
    order.save(update_fields=["checkout_url", "updated_at"])


def _cancel_unpaid(order):
    # the order never got a payment link, so nobody can pay for it
    order.status = Order.STATUS_CANCELLED
    order.save(update_fields=["status", "updated_at"])
    logger.warning("Order #%s cancelled: payment link could not be created", order.order_code)


# -------------------------------
# ADMIN: APPROVE / CANCEL
# -------------------------------
def _locked_order(order_id):
    try:
        return Order.objects.select_for_update().get(pk=order_id)
    except (Order.DoesNotExist, ValueError, TypeError):
        raise NotFound("Không tìm thấy đơn hàng!")


@transaction.atomic
def approve_order(order_id):
    order = _locked_order(order_id)
    if order.is_terminal:
        raise OrderAlreadyProcessed()
    if order.status not in Order.APPROVABLE_STATUSES:
        raise InvalidTransition("Đơn hàng chưa được thanh toán qua PayOS, chưa thể duyệt.")

    needed = OrderedDict()
    names = {}
    for item in order.items.all():
        if item.variant_id is None:
            continue
        needed[item.variant_id] = needed.get(item.variant_id, 0) + item.quantity
        names.setdefault(item.variant_id, item.product_name)

    # lock in primary key order so concurrent approvals cannot deadlock
    variants = {
        v.pk: v for v in ProductVariant.objects.select_for_update().filter(pk__in=list(needed)).order_by("pk")
    }
    for variant_id, quantity in needed.items():
        variant = variants.get(variant_id)
        if variant is None or variant.stock < quantity:
            raise InsufficientStock(f'Sản phẩm "{names[variant_id]}" không đủ tồn kho để duyệt!')

    for variant_id, quantity in needed.items():
        ProductVariant.objects.filter(pk=variant_id).update(stock=F("stock") - quantity)

    order.status = Order.STATUS_PAID_AND_CONFIRMED
    order.save(update_fields=["status", "updated_at"])
    logger.info("Order #%s approved, stock updated for %s variant(s)", order.order_code, len(needed))
    return order


@transaction.atomic
def cancel_order(order_id):
    order = _locked_order(order_id)
    if order.status == Order.STATUS_PAID_AND_CONFIRMED:
        raise OrderAlreadyProcessed("Đơn hàng đã hoàn tất giao nhận, không thể hủy tự động.")
    if order.status == Order.STATUS_CANCELLED:
        raise OrderAlreadyProcessed("Đơn hàng đã bị hủy trước đó.")
    order.status = Order.STATUS_CANCELLED
    order.save(update_fields=["status", "updated_at"])
    logger.info("Order #%s cancelled by admin", order.order_code)
    return order


# -------------------------------
# PAYMENT WEBHOOK
# -------------------------------
def handle_payment_webhook(payload, gateway):
    """
    Apply a gateway callback. Returns the updated order, or None when the
    callback changes nothing (unpaid signal, unknown order, already settled).
    """
    if gateway is None:
        raise PaymentGatewayError("Payment gateway is not configured.")
    callback = gateway.verify_callback(payload)
    if not callback.paid:
        logger.info("Webhook for order %s is not a paid signal, ignoring", callback.order_code)
        return None

    with transaction.atomic():
        order = Order.objects.select_for_update().filter(order_code=callback.order_code).first()
        if order is None:
            logger.info("Webhook for unknown order code %s, ignoring", callback.order_code)
            return None
        if order.status != Order.STATUS_PENDING_PAYOS:
            logger.info("Webhook for order %s in status %s, nothing to do", order.order_code, order.status)
            return None
        if callback.amount and callback.amount != order.total:
            logger.warning(
                "Webhook amount %s differs from order %s total %s",
                callback.amount, order.order_code, order.total,
            )
        order.status = Order.STATUS_PAID_PENDING_CONFIRM
        order.save(update_fields=["status", "updated_at"])
    logger.info("Order %s paid through the gateway", order.order_code)
    return order


# -------------------------------
# TRACKING
# -------------------------------
def track_order(order_code, phone):
    phone = (str(phone) if phone is not None else "").strip()
    if not order_code or not phone:
        raise ValidationFailed("Vui lòng nhập đủ Mã đơn hàng và Số điện thoại.")
    try:
        code = int(str(order_code).strip())
    except ValueError:
        raise ValidationFailed("Mã đơn hàng không hợp lệ.")
    order = Order.objects.prefetch_related("items").filter(order_code=code, phone=phone).first()
    if order is None:
        raise NotFound("Không tìm thấy đơn hàng với thông tin đã cung cấp.")
    return order


def list_orders():
    return Order.objects.prefetch_related("items").order_by("-created_at")
