import json

import pytest

from shop.models import Category, Order, OrderItem, Product, ProductImage, ProductVariant, Review
from shop.shop_utils import slugify_vi

pytestmark = pytest.mark.django_db


def send_json(client, method, url, payload):
    return getattr(client, method)(url, data=json.dumps(payload), content_type='application/json')


def product_payload(category, **overrides):
    payload = {
        'name': 'Ống nhựa PVC Bình Minh Φ21',
        'slug': '',
        'description': 'Ống nước',
        'unit': 'Cây (4m)',
        'categoryId': category.pk,
        'variants': [
            {'attributeValue': 'Φ21', 'sku': 'BM-21', 'price': '28000', 'stock': '50'},
            {'name': 'Φ27', 'sku': '', 'price': 42000, 'stock': 10},
        ],
        'images': ['https://cdn.example.test/bm21.jpg'],
    }
    payload.update(overrides)
    return payload


def test_slugify_vi():
    assert slugify_vi('Vòi xịt vệ sinh Inox 304') == 'voi-xit-ve-sinh-inox-304'
    assert slugify_vi('Đồ kim khí') == 'do-kim-khi'
    assert slugify_vi('  Ống  nhựa -- PVC ') == 'ong-nhua-pvc'


# -------------------------------
# categories
# -------------------------------
def test_list_categories_with_counts(client, category, product):
    Category.objects.create(name='Dây điện', slug='day-dien')

    response = client.get('/api/categories?limit=1')
    body = response.json()

    assert response.status_code == 200
    assert body['pagination'] == {'currentPage': 1, 'totalPages': 2, 'totalItems': 2, 'limit': 1}
    assert body['data'][0]['slug'] == 'bong-den'
    assert body['data'][0]['_count'] == {'products': 1}


def test_create_category_admin_only(client, customer_client, admin_client):
    payload = {'name': 'Ống nước', 'slug': 'ong-nuoc'}
    assert send_json(client, 'post', '/api/categories', payload).status_code == 401
    assert send_json(customer_client, 'post', '/api/categories', payload).status_code == 403

    response = send_json(admin_client, 'post', '/api/categories', payload)
    assert response.status_code == 201
    assert Category.objects.filter(slug='ong-nuoc').exists()

    assert send_json(admin_client, 'post', '/api/categories', payload).status_code == 400
    assert send_json(admin_client, 'post', '/api/categories', {'name': 'X'}).status_code == 400


def test_delete_category_with_products_is_refused(admin_client, category, product):
    response = admin_client.delete(f'/api/categories/{category.pk}')
    assert response.status_code == 400
    assert Category.objects.filter(pk=category.pk).exists()

    product.delete()
    assert admin_client.delete(f'/api/categories/{category.pk}').status_code == 200
    assert admin_client.delete(f'/api/categories/{category.pk}').status_code == 404


# -------------------------------
# products
# -------------------------------
def test_list_products_filters(client, category, variant_a, variant_b):
    other = Category.objects.create(name='Ống nước', slug='ong-nuoc')
    Product.objects.create(category=other, name='Ống PVC', slug='ong-pvc')

    body = client.get('/api/products').json()
    assert body['pagination']['totalItems'] == 3

    by_category = client.get('/api/products?category=ong-nuoc').json()['data']
    assert [p['slug'] for p in by_category] == ['ong-pvc']

    by_name = client.get('/api/products?q=cadivi').json()['data']
    assert [p['slug'] for p in by_name] == ['day-dien-cadivi']
    assert by_name[0]['variants'][0]['sku'] == 'B'


def test_product_detail_by_slug(client, variant_a):
    response = client.get('/api/products/bong-bup-led-20w')
    assert response.status_code == 200
    data = response.json()['data']
    assert data['category']['slug'] == 'bong-den'
    assert data['variants'][0]['price'] == 1000

    assert client.get('/api/products/khong-co').status_code == 404


def test_create_product(admin_client, category):
    response = send_json(admin_client, 'post', '/api/products', product_payload(category))

    assert response.status_code == 201
    data = response.json()['data']
    assert data['slug'] == 'ong-nhua-pvc-binh-minh-21'
    assert data['unit'] == 'Cây (4m)'
    assert data['images'] == [{'id': data['images'][0]['id'], 'url': 'https://cdn.example.test/bm21.jpg'}]
    first, second = data['variants']
    assert (first['name'], first['sku'], first['price'], first['stock']) == ('Φ21', 'BM-21', 28000, 50)
    assert second['sku'].startswith('ong-nhua-pvc-binh-minh-21-')


def test_create_product_validation(admin_client, customer_client, category):
    assert send_json(customer_client, 'post', '/api/products', product_payload(category)).status_code == 403
    assert send_json(admin_client, 'post', '/api/products', product_payload(category, variants=[])).status_code == 400
    assert send_json(admin_client, 'post', '/api/products', product_payload(category, categoryId=9999)).status_code == 400
    bad_price = product_payload(category, variants=[{'sku': 'X', 'price': -1, 'stock': 1}])
    assert send_json(admin_client, 'post', '/api/products', bad_price).status_code == 400


def test_duplicate_sku_is_rejected(admin_client, category, variant_a):
    payload = product_payload(category, variants=[{'sku': 'A', 'price': 1, 'stock': 1}])
    response = send_json(admin_client, 'post', '/api/products', payload)
    assert response.status_code == 400
    assert not Product.objects.filter(slug='ong-nhua-pvc-binh-minh-21').exists()


def test_update_product_keeps_variants_by_sku(admin_client, category, product, variant_a, make_order):
    order = make_order([(variant_a, 1)])
    ProductImage.objects.create(product=product, url='https://cdn.example.test/old.jpg')
    payload = product_payload(
        category,
        name='Bóng búp LED 20W (mới)',
        slug='bong-bup-led-20w',
        variants=[{'sku': 'A', 'price': 1200, 'stock': 7}, {'sku': 'A-30W', 'price': 1500, 'stock': 3}],
        images=['https://cdn.example.test/new.jpg'],
    )

    response = send_json(admin_client, 'put', f'/api/products/{product.pk}', payload)

    assert response.status_code == 200
    variant_a.refresh_from_db()
    assert (variant_a.price, variant_a.stock) == (1200, 7)
    assert order.items.get().variant_id == variant_a.pk
    assert list(product.images.values_list('url', flat=True)) == ['https://cdn.example.test/new.jpg']
    assert product.variants.count() == 2


def test_update_missing_product(admin_client, category):
    assert send_json(admin_client, 'put', '/api/products/9999', product_payload(category)).status_code == 404


def test_delete_product_keeps_order_history(admin_client, product, variant_a, make_order):
    order = make_order([(variant_a, 2)])

    assert admin_client.delete(f'/api/products/{product.pk}').status_code == 200

    assert not ProductVariant.objects.filter(pk=variant_a.pk).exists()
    item = OrderItem.objects.get(order=order)
    assert item.variant is None
    assert item.product_name == 'Bóng búp LED 20W'
    assert Order.objects.filter(pk=order.pk).exists()


def test_search_suggest(client, category):
    for i in range(8):
        Product.objects.create(category=category, name=f'Bóng đèn LED {i}', slug=f'bong-den-led-{i}')

    assert client.get('/api/search/suggest?q=').json()['data'] == []
    names = client.get('/api/search/suggest?q=led').json()['data']
    assert len(names) == 6
    assert all('LED' in n for n in names)


# -------------------------------
# reviews
# -------------------------------
def test_reviews(client, customer_client, customer, product):
    response = send_json(customer_client, 'post', '/api/reviews', {'productId': product.pk, 'rating': 4, 'comment': 'Tốt'})
    assert response.status_code == 201
    assert response.json()['data']['user'] == {'name': customer.name}

    listed = client.get(f'/api/products/{product.pk}/reviews').json()['data']
    assert [(r['rating'], r['comment']) for r in listed] == [(4, 'Tốt')]


@pytest.mark.parametrize('payload,status', [
    ({'rating': 5}, 400),
    ({'productId': 'PRODUCT', 'rating': 6}, 400),
    ({'productId': 999999, 'rating': 3}, 404),
])
def test_review_validation(customer_client, product, payload, status):
    if payload.get('productId') == 'PRODUCT':
        payload = dict(payload, productId=product.pk)
    assert send_json(customer_client, 'post', '/api/reviews', payload).status_code == status
    assert Review.objects.count() == 0
