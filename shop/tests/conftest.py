import pytest
from django.apps import apps
from django.test import Client

from shop.auth import issue_token
from shop.exceptions import PaymentGatewayError, WebhookVerificationError
from shop.models import Category, Order, OrderItem, Product, ProductVariant, User
from shop.orders import generate_order_code
from shop.payments import PaymentCallback, PaymentGateway


class FakeGateway(PaymentGateway):
    """Records checkout requests; accepts callbacks signed with 'valid'."""

    def __init__(self):
        self.links = []
        self.fail = False

    def create_checkout_link(self, order_code, amount, description, items, cancel_url, return_url):
        if self.fail:
            raise PaymentGatewayError()
        self.links.append({
            'order_code': order_code,
            'amount': amount,
            'description': description,
            'items': items,
            'cancel_url': cancel_url,
            'return_url': return_url,
        })
        return f"https://pay.example.test/web/{order_code}"

    def verify_callback(self, payload):
        if payload.get('signature') != 'valid':
            raise WebhookVerificationError()
        data = payload['data']
        return PaymentCallback(
            order_code=int(data['orderCode']),
            amount=int(data.get('amount', 0)),
            paid=data.get('code') == '00',
        )


def webhook_payload(order_code, amount=0, code='00', signature='valid'):
    return {
        'code': code,
        'desc': 'success',
        'success': code == '00',
        'data': {'orderCode': order_code, 'amount': amount, 'code': code},
        'signature': signature,
    }


@pytest.fixture(autouse=True)
def fast_hashing(settings):
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
    settings.SHOP_ADMIN_EMAILS = []


@pytest.fixture
def gateway():
    config = apps.get_app_config('shop')
    previous = config.gateway
    config.gateway = FakeGateway()
    yield config.gateway
    config.gateway = previous


@pytest.fixture
def category(db):
    return Category.objects.create(name='Bóng đèn', slug='bong-den')


@pytest.fixture
def product(category):
    return Product.objects.create(category=category, name='Bóng búp LED 20W', slug='bong-bup-led-20w')


@pytest.fixture
def variant_a(product):
    return ProductVariant.objects.create(product=product, sku='A', price=1000, stock=5)


@pytest.fixture
def variant_b(category):
    other = Product.objects.create(category=category, name='Dây điện Cadivi', slug='day-dien-cadivi')
    return ProductVariant.objects.create(product=other, sku='B', price=2000, stock=0)


@pytest.fixture
def customer(db):
    return User.objects.create_user('0901000001', 'secret', name='Khách Hàng')


@pytest.fixture
def admin_user(db):
    return User.objects.create_superuser('0909999999', 'admin-pass', name='Quản trị')


@pytest.fixture
def customer_client(customer):
    return Client(HTTP_AUTHORIZATION=f"Bearer {issue_token(customer)}")


@pytest.fixture
def admin_client(admin_user):
    return Client(HTTP_AUTHORIZATION=f"Bearer {issue_token(admin_user)}")


@pytest.fixture
def make_order(db):
    """Persist an order directly, bypassing checkout rules."""
    def factory(lines, status=Order.STATUS_PENDING_COD, phone='0912345678', **fields):
        payment = Order.PAYMENT_COD if status == Order.STATUS_PENDING_COD else Order.PAYMENT_PAYOS
        order = Order.objects.create(
            order_code=generate_order_code(),
            customer_name=fields.pop('customer_name', 'Nguyễn Văn A'),
            phone=phone,
            address='12 Lê Lợi',
            payment_method=fields.pop('payment_method', payment),
            status=status,
            total=sum(variant.price * qty for variant, qty in lines),
            **fields,
        )
        for variant, qty in lines:
            OrderItem.objects.create(
                order=order,
                variant=variant,
                product_name=variant.product.name,
                quantity=qty,
                price=variant.price,
            )
        return order
    return factory
