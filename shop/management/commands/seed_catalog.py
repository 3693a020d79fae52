import logging

from django.core.management.base import BaseCommand
from django.db import transaction

from shop.models import Category, Product, ProductVariant
from shop.shop_utils import slugify_vi

logger = logging.getLogger(__name__)

CATEGORIES = [
    ('Bóng đèn', 'bong-den'),
    ('Dây điện', 'day-dien'),
    ('Ống nước', 'ong-nuoc'),
    ('Phụ kiện ống', 'phu-kien-ong'),
    ('Thiết bị vệ sinh', 'thiet-bi-ve-sinh'),
    ('Đồ kim khí', 'do-kim-khi'),
]

# name, category, unit, price, sku
PRODUCTS = [
    ('Bóng búp LED Hoàng Hải 20W', 'Bóng đèn', 'Cái', 25000, 'HH-20W'),
    ('Bóng búp LED Hoàng Hải 30W', 'Bóng đèn', 'Cái', 35000, 'HH-30W'),
    ('Bóng LED trụ Philips 40W', 'Bóng đèn', 'Cái', 125000, 'PH-40W'),
    ('Đèn tuýp LED 1m2 Nanoco', 'Bóng đèn', 'Bộ', 95000, 'NA-120'),
    ('Dây điện đơn Cadivi 1.5 Red', 'Dây điện', 'Cuộn', 450000, 'CV-1.5R'),
    ('Dây điện đơn Cadivi 2.5 Blue', 'Dây điện', 'Cuộn', 720000, 'CV-2.5B'),
    ('Dây đôi mềm Daphaco 2x16', 'Dây điện', 'Mét', 8500, 'DP-216'),
    ('Ổ cắm dây Lioa 3 lỗ 3m', 'Dây điện', 'Cái', 65000, 'LI-33'),
    ('Ống nhựa PVC Bình Minh Φ21', 'Ống nước', 'Cây (4m)', 28000, 'BM-21'),
    ('Ống nhựa PVC Bình Minh Φ27', 'Ống nước', 'Cây (4m)', 42000, 'BM-27'),
    ('Ống nhựa PVC Bình Minh Φ34', 'Ống nước', 'Cây (4m)', 55000, 'BM-34'),
    ('Ống gân xoắn chịu lực Φ50', 'Ống nước', 'Cuộn', 1200000, 'GX-50'),
    ('Co 90 nhựa PVC Φ21', 'Phụ kiện ống', 'Cái', 2000, 'CO-21'),
    ('Tê đều nhựa PVC Φ27', 'Phụ kiện ống', 'Cái', 5000, 'TE-27'),
    ('Van bi nhựa tay gạt Φ21', 'Phụ kiện ống', 'Cái', 15000, 'VAN-21'),
    ('Keo dán ống Bình Minh 1kg', 'Phụ kiện ống', 'Lon', 185000, 'KEO-1K'),
    ('Vòi xịt vệ sinh Inox 304', 'Thiết bị vệ sinh', 'Bộ', 145000, 'XIT-304'),
    ('Sen tắm nóng lạnh Inax', 'Thiết bị vệ sinh', 'Bộ', 1850000, 'SEN-IN'),
    ('Kìm điện đa năng Asaki', 'Đồ kim khí', 'Cái', 95000, 'KIM-AS'),
    ('Búa đóng đinh cán sắt', 'Đồ kim khí', 'Cái', 65000, 'BUA-CS'),
]

DEFAULT_STOCK = 100


class Command(BaseCommand):
    help = "Load the sample Trường Tín categories and products."

    def add_arguments(self, parser):
        parser.add_argument(
            '--stock', type=int, default=DEFAULT_STOCK,
            help="Stock for every seeded variant (default %(default)s).",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        categories = {}
        for name, slug in CATEGORIES:
            categories[name], _ = Category.objects.update_or_create(slug=slug, defaults={'name': name})

        created = 0
        for name, category, unit, price, sku in PRODUCTS:
            product, is_new = Product.objects.update_or_create(
                slug=slugify_vi(name),
                defaults={
                    'name': name,
                    'category': categories[category],
                    'unit': unit,
                    'description': f"Sản phẩm {name} chất lượng cao, phân phối chính hãng tại điện nước Trường Tín.",
                },
            )
            ProductVariant.objects.update_or_create(
                sku=sku,
                defaults={
                    'product': product,
                    'name': ProductVariant.DEFAULT_NAME,
                    'price': price,
                    'stock': options['stock'],
                },
            )
            created += is_new

        logger.info("Catalog seeded: %s categories, %s new products", len(categories), created)
        self.stdout.write(self.style.SUCCESS(
            f"Seeded {len(categories)} categories and {len(PRODUCTS)} products ({created} new)."
        ))
