import json
from datetime import datetime, timedelta
from io import StringIO

import pytest
from django.core import mail
from django.core.management import call_command
from django.template import Context, Template
from django.utils import timezone

from shop.models import Category, Contact, Order, Product, ProductVariant
from shop.notifications import admin_feed
from shop.reports import date_range, dashboard_stats

pytestmark = pytest.mark.django_db


def post_json(client, url, payload):
    return client.post(url, data=json.dumps(payload), content_type='application/json')


# -------------------------------
# contacts
# -------------------------------
def test_submit_contact(client, settings, django_capture_on_commit_callbacks):
    settings.SHOP_ADMIN_EMAILS = ['owner@truongtin.test', 'OWNER@truongtin.test']
    with django_capture_on_commit_callbacks(execute=True):
        response = post_json(client, '/api/contacts', {'name': ' Hùng ', 'phone': '0905', 'message': 'Báo giá ống?'})

    assert response.status_code == 200
    contact = Contact.objects.get()
    assert (contact.name, contact.status) == ('Hùng', Contact.STATUS_PENDING)
    assert len(mail.outbox) == 1
    assert mail.outbox[0].to == ['owner@truongtin.test']
    assert 'Báo giá ống?' in mail.outbox[0].body


def test_submit_contact_requires_fields(client):
    response = post_json(client, '/api/contacts', {'name': 'Hùng', 'phone': ''})
    assert response.status_code == 400
    assert Contact.objects.count() == 0


@pytest.mark.parametrize('field', ['name', 'phone', 'message'])
def test_submit_contact_rejects_non_text_fields(client, field):
    payload = {'name': 'Hùng', 'phone': '0905', 'message': 'Báo giá ống?'}
    payload[field] = 905
    response = post_json(client, '/api/contacts', payload)
    assert response.status_code == 400
    assert Contact.objects.count() == 0


def test_contact_admin_endpoints(client, admin_client):
    contact = Contact.objects.create(name='Hùng', phone='0905', message='Xin chào')

    assert client.get('/api/contacts/admin/all').status_code == 401
    listed = admin_client.get('/api/contacts/admin/all').json()['data']
    assert [c['id'] for c in listed] == [contact.pk]

    response = admin_client.patch(f'/api/contacts/resolve/{contact.pk}')
    assert response.status_code == 200
    contact.refresh_from_db()
    assert contact.status == Contact.STATUS_RESOLVED
    assert admin_client.patch('/api/contacts/resolve/9999').status_code == 404


# -------------------------------
# notifications feed
# -------------------------------
def test_admin_feed_merges_pending_items(make_order, variant_a):
    now = timezone.now()
    old_order = make_order([(variant_a, 1)], phone='0900000001', created_at=now - timedelta(hours=2))
    make_order([(variant_a, 1)], status=Order.STATUS_CANCELLED, phone='0900000002')
    contact = Contact.objects.create(name='Mai', phone='0906', message='Gọi lại giúp')
    Contact.objects.filter(pk=contact.pk).update(created_at=now - timedelta(hours=1))
    Contact.objects.create(name='Done', phone='0907', message='ok', status=Contact.STATUS_RESOLVED)

    feed = admin_feed()

    assert [n['id'] for n in feed] == [f'contact_{contact.pk}', f'order_{old_order.pk}']
    assert feed[1]['details']['orderCode'] == str(old_order.order_code)
    assert feed[0]['type'] == 'CONTACT' and feed[0]['isRead'] is False


def test_notifications_endpoint(admin_client, customer_client):
    assert customer_client.get('/api/admin/notifications').status_code == 403
    response = admin_client.get('/api/admin/notifications')
    assert response.status_code == 200
    assert response.json()['data'] == []


# -------------------------------
# dashboard
# -------------------------------
def test_date_ranges():
    now = timezone.make_aware(datetime(2026, 3, 18, 10, 30))  # Wednesday
    start, end = date_range('thisWeek', now)
    assert timezone.localtime(start).date().isoformat() == '2026-03-16'
    assert timezone.localtime(end).date().isoformat() == '2026-03-18'

    start, end = date_range('lastMonth', now)
    assert (timezone.localtime(start).day, timezone.localtime(end).day) == (1, 28)
    assert timezone.localtime(end).month == 2


def test_dashboard_stats(make_order, variant_a, variant_b):
    ProductVariant.objects.filter(pk=variant_b.pk).update(stock=3)
    now = timezone.now()
    make_order([(variant_a, 2)], phone='0900000001', created_at=now)
    make_order([(variant_a, 1)], status=Order.STATUS_PAID_AND_CONFIRMED, phone='0900000002', created_at=now)
    make_order([(variant_a, 5)], status=Order.STATUS_CANCELLED, phone='0900000003', created_at=now)

    data = dashboard_stats('today', now)

    assert data['summary'] == {
        'totalRevenue': 3000,
        'approvedRevenue': 1000,
        'pendingRevenue': 2000,
        'totalOrdersCount': 2,
        'approvedOrdersCount': 1,
        'pendingOrdersCount': 1,
    }
    assert data['revenueChart']['data'] == [3000]
    assert data['topProducts'] == {'labels': ['Bóng búp LED 20W'], 'data': [3]}
    assert data['lowStock'] == [
        {'variantId': variant_b.pk, 'name': 'Dây điện Cadivi', 'category': 'Bóng đèn', 'stock': 3},
        {'variantId': variant_a.pk, 'name': 'Bóng búp LED 20W', 'category': 'Bóng đèn', 'stock': 5},
    ]


def test_dashboard_endpoint(admin_client):
    response = admin_client.get('/api/admin/dashboard?range=thisYear')
    assert response.status_code == 200
    assert response.json()['data']['summary']['totalOrdersCount'] == 0
    assert admin_client.get('/api/admin/dashboard?range=forever').status_code == 400


# -------------------------------
# misc
# -------------------------------
def test_vnd_filter():
    rendered = Template('{% load currency_filters %}{{ a|vnd }}|{{ b|vnd }}').render(Context({'a': 1850000, 'b': None}))
    assert rendered == '1.850.000 ₫|0 ₫'


def test_seed_catalog_is_idempotent():
    call_command('seed_catalog', stdout=StringIO())
    call_command('seed_catalog', '--stock', '20', stdout=StringIO())

    assert Category.objects.count() == 6
    assert Product.objects.count() == 20
    variant = ProductVariant.objects.get(sku='XIT-304')
    assert variant.product.slug == 'voi-xit-ve-sinh-inox-304'
    assert variant.stock == 20
