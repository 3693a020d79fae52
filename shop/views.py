import logging
import time

from django.apps import apps
from django.db import IntegrityError, transaction
from django.db.models import Count
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from . import orders as order_flow
from .auth import admin_required, authenticate_user, issue_token, register_user, token_required, token_user
from .exceptions import AuthenticationFailed, DuplicateError, NotFound, ValidationFailed
from .models import Category, Contact, Product, ProductImage, ProductVariant, Review
from .notifications import admin_feed, notify_new_contact
from .reports import dashboard_stats
from .shop_utils import clean_str, json_body, json_view, ok, paginate, parse_int, slugify_vi

logger = logging.getLogger(__name__)

SUGGEST_LIMIT = 6


def _gateway():
    return apps.get_app_config('shop').gateway


# -------------------------------
# AUTH
# -------------------------------
@require_POST
@json_view
def register(request):
    data = json_body(request)
    register_user(data.get('phone'), data.get('password'), data.get('name'))
    return ok(message='Đăng ký thành công!', status=201)


@require_POST
@json_view
def login(request):
    data = json_body(request)
    user = authenticate_user(data.get('phone'), data.get('password'))
    return ok(data=user.to_dict(), message='Đăng nhập thành công!', token=issue_token(user))


# -------------------------------
# CATEGORIES
# -------------------------------
@require_http_methods(['GET', 'POST'])
@json_view
def categories(request):
    if request.method == 'POST':
        return _create_category(request)

    queryset = Category.objects.annotate(product_count=Count('products')).order_by('name')
    rows, pagination = paginate(request, queryset)
    data = [dict(c.to_dict(), _count={'products': c.product_count}) for c in rows]
    return ok(data=data, pagination=pagination)


@admin_required
def _create_category(request):
    data = json_body(request)
    name = clean_str(data.get('name'), 'name')
    slug = clean_str(data.get('slug'), 'slug')
    if not name or not slug:
        raise ValidationFailed('Vui lòng nhập tên và slug')
    if Category.objects.filter(slug=slug).exists():
        raise DuplicateError('Slug danh mục bị trùng')
    category = Category.objects.create(name=name, slug=slug)
    return ok(data=category.to_dict(), message='Tạo danh mục thành công', status=201)


@require_http_methods(['DELETE'])
@json_view
@admin_required
def category_detail(request, category_id):
    category = Category.objects.annotate(product_count=Count('products')).filter(pk=category_id).first()
    if category is None:
        raise NotFound('Không tìm thấy')
    if category.product_count > 0:
        raise ValidationFailed(f'Không thể xóa danh mục đang có {category.product_count} sản phẩm!')
    category.delete()
    return ok(message='Xóa thành công')


# -------------------------------
# PRODUCTS
# -------------------------------
def _product_queryset():
    return Product.objects.select_related('category').prefetch_related('images', 'variants')


@require_http_methods(['GET', 'POST'])
@json_view
def products(request):
    if request.method == 'POST':
        return _create_product(request)

    queryset = _product_queryset().order_by('-created_at')
    category = request.GET.get('category')
    q = (request.GET.get('q') or '').strip()
    if category:
        queryset = queryset.filter(category__slug=category)
    if q:
        queryset = queryset.filter(name__icontains=q)
    rows, pagination = paginate(request, queryset)
    return ok(data=[p.to_dict() for p in rows], pagination=pagination)


@require_http_methods(['GET', 'PUT', 'DELETE'])
@json_view
def product_detail(request, key):
    """GET looks a product up by slug; PUT and DELETE address it by id."""
    if request.method == 'GET':
        product = _product_queryset().filter(slug=key).first()
        if product is None:
            raise NotFound('Không tìm thấy')
        return ok(data=product.to_dict())
    if request.method == 'PUT':
        return _update_product(request, key)
    return _delete_product(request, key)


def _clean_product_payload(data):
    name = clean_str(data.get('name'), 'name')
    if not name:
        raise ValidationFailed('Vui lòng nhập tên sản phẩm')
    slug = clean_str(data.get('slug'), 'slug') or slugify_vi(name)
    category_id = parse_int(data.get('categoryId'), 'categoryId')
    category = Category.objects.filter(pk=category_id).first()
    if category is None:
        raise ValidationFailed('Danh mục không tồn tại')

    variants = data.get('variants') or []
    if not isinstance(variants, list) or not variants:
        raise ValidationFailed('Sản phẩm cần ít nhất một phiên bản')
    cleaned_variants = []
    stamp = int(time.time() * 1000)
    for index, v in enumerate(variants):
        if not isinstance(v, dict):
            raise ValidationFailed('Phiên bản sản phẩm không hợp lệ')
        sku = clean_str(v.get('sku'), 'sku') or f'{slug}-{stamp}-{index}'
        cleaned_variants.append({
            'name': v.get('attributeValue') or v.get('name') or ProductVariant.DEFAULT_NAME,
            'sku': sku,
            'price': parse_int(v.get('price'), 'price', minimum=0),
            'stock': parse_int(v.get('stock'), 'stock', minimum=0),
        })

    images = data.get('images') or []
    if not isinstance(images, list):
        raise ValidationFailed('Danh sách ảnh không hợp lệ')

    fields = {
        'name': name,
        'slug': slug,
        'description': clean_str(data.get('description'), 'description'),
        'unit': clean_str(data.get('unit'), 'unit') or Product.DEFAULT_UNIT,
        'category': category,
    }
    return fields, cleaned_variants, [str(url) for url in images if url]


def _save_variants_and_images(product, variants, images):
    """
    Sync variants by SKU: matching rows are updated in place so pending
    orders keep pointing at them; the rest are dropped or created.
    """
    existing = {v.sku: v for v in product.variants.all()}
    keep = set()
    for v in variants:
        variant = existing.get(v['sku'])
        if variant is None:
            variant = ProductVariant(product=product, sku=v['sku'])
        variant.name = v['name']
        variant.price = v['price']
        variant.stock = v['stock']
        variant.save()
        keep.add(v['sku'])
    product.variants.exclude(sku__in=keep).delete()

    # uploads made through the Django admin are kept, linked images are replaced
    product.images.exclude(url='').delete()
    ProductImage.objects.bulk_create(
        ProductImage(product=product, url=url, position=position)
        for position, url in enumerate(images)
    )


@admin_required
def _create_product(request):
    fields, variants, images = _clean_product_payload(json_body(request))
    try:
        with transaction.atomic():
            product = Product.objects.create(**fields)
            _save_variants_and_images(product, variants, images)
    except IntegrityError:
        raise DuplicateError('Slug hoặc SKU bị trùng')
    logger.info("Product %s created", product.slug)
    return ok(data=_product_queryset().get(pk=product.pk).to_dict(), status=201)


@admin_required
def _update_product(request, key):
    product_id = parse_int(key, 'id')
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise NotFound('Không tìm thấy')
    fields, variants, images = _clean_product_payload(json_body(request))
    try:
        with transaction.atomic():
            for name, value in fields.items():
                setattr(product, name, value)
            product.save()
            _save_variants_and_images(product, variants, images)
    except IntegrityError:
        raise DuplicateError('Slug hoặc SKU bị trùng')
    logger.info("Product %s updated", product.slug)
    return ok(data=_product_queryset().get(pk=product.pk).to_dict(), message='Cập nhật thành công')


@admin_required
def _delete_product(request, key):
    product_id = parse_int(key, 'id')
    product = Product.objects.filter(pk=product_id).first()
    if product is None:
        raise NotFound('Không tìm thấy')
    # variants and images cascade; order items keep their name snapshot
    product.delete()
    logger.info("Product %s deleted", product_id)
    return ok(message='Đã xóa')


@require_GET
@json_view
def search_suggest(request):
    q = (request.GET.get('q') or '').strip()
    if not q:
        return ok(data=[])
    names = Product.objects.filter(name__icontains=q).values_list('name', flat=True)[:SUGGEST_LIMIT]
    return ok(data=list(names))


# -------------------------------
# REVIEWS
# -------------------------------
@require_GET
@json_view
def product_reviews(request, product_id):
    reviews = Review.objects.filter(product_id=product_id).select_related('user').order_by('-created_at')
    return ok(data=[r.to_dict() for r in reviews])


@require_POST
@json_view
@token_required
def create_review(request):
    user = token_user(request)
    if user is None:
        raise AuthenticationFailed('Token hợp lệ nhưng không tìm thấy người dùng!')
    data = json_body(request)
    if not data.get('productId') or not data.get('rating'):
        raise ValidationFailed('Thiếu thông tin đánh giá')
    rating = parse_int(data.get('rating'), 'rating')
    if not 1 <= rating <= 5:
        raise ValidationFailed('Điểm đánh giá phải từ 1 đến 5')
    product = Product.objects.filter(pk=parse_int(data.get('productId'), 'productId')).first()
    if product is None:
        raise NotFound('Không tìm thấy sản phẩm')
    review = Review.objects.create(
        product=product,
        user=user,
        rating=rating,
        comment=clean_str(data.get('comment'), 'comment'),
    )
    return ok(data=review.to_dict(), status=201)


# -------------------------------
# ORDERS
# -------------------------------
@require_POST
@json_view
def create_order(request):
    data = json_body(request)
    order = order_flow.create_order(
        customer_name=data.get('fullName'),
        phone=data.get('phone'),
        address=data.get('address'),
        payment_method=data.get('paymentMethod'),
        items=data.get('items'),
        gateway=_gateway(),
        user=token_user(request),
    )
    if order.checkout_url:
        return ok(data=order.to_dict(), checkoutUrl=order.checkout_url, status=201)
    return ok(
        data=order.to_dict(),
        message='Đặt hàng thành công. Trường Tín sẽ gọi điện xác nhận sớm nhất.',
        orderCode=str(order.order_code),
        status=201,
    )


@require_POST
@json_view
def track_order(request):
    data = json_body(request)
    order = order_flow.track_order(data.get('orderCode'), data.get('phone'))
    return ok(data=order.to_dict())


@require_POST
@json_view
def payment_webhook(request):
    # no auth here: the gateway signature is the only proof of origin
    order_flow.handle_payment_webhook(json_body(request), _gateway())
    return ok()


@require_GET
@json_view
@admin_required
def admin_orders(request):
    return ok(data=[o.to_dict() for o in order_flow.list_orders()])


@require_http_methods(['PATCH', 'POST'])
@json_view
@admin_required
def approve_order(request, order_id):
    order_flow.approve_order(order_id)
    return ok(message='Duyệt đơn hàng và cập nhật kho thành công!')


@require_http_methods(['PATCH', 'POST'])
@json_view
@admin_required
def cancel_order(request, order_id):
    order_flow.cancel_order(order_id)
    return ok(message='Đơn hàng đã được chuyển sang trạng thái Hủy.')


# -------------------------------
# CONTACT
# -------------------------------
@require_POST
@json_view
def submit_contact(request):
    data = json_body(request)
    name = clean_str(data.get('name'), 'name')
    phone = clean_str(data.get('phone'), 'phone')
    message_text = clean_str(data.get('message'), 'message')
    if not name or not phone or not message_text:
        raise ValidationFailed('Vui lòng điền đầy đủ họ tên, số điện thoại và nội dung.')

    contact = Contact.objects.create(name=name, phone=phone, message=message_text)
    logger.info("New contact message from %s (%s)", name, phone)
    transaction.on_commit(lambda: notify_new_contact(contact.pk))
    return ok(data=contact.to_dict(), message='Gửi liên hệ thành công!')


@require_GET
@json_view
@admin_required
def admin_contacts(request):
    return ok(data=[c.to_dict() for c in Contact.objects.order_by('-created_at')])


@require_http_methods(['PATCH'])
@json_view
@admin_required
def resolve_contact(request, contact_id):
    contact = Contact.objects.filter(pk=contact_id).first()
    if contact is None:
        raise NotFound('Không tìm thấy liên hệ')
    contact.status = Contact.STATUS_RESOLVED
    contact.save(update_fields=['status'])
    return ok(data=contact.to_dict(), message='Đã xử lý liên hệ')


# -------------------------------
# ADMIN DASHBOARD
# -------------------------------
@require_GET
@json_view
@admin_required
def admin_notifications(request):
    return ok(data=admin_feed())


@require_GET
@json_view
@admin_required
def dashboard(request):
    return ok(data=dashboard_stats(request.GET.get('range') or 'thisMonth'))
