from django.contrib.auth.base_user import AbstractBaseUser, BaseUserManager
from django.db import models
from django.utils import timezone
from cloudinary.models import CloudinaryField


# ------------------------------
# USER MODEL
# ------------------------------
class UserManager(BaseUserManager):
    use_in_migrations = True

    def create_user(self, phone, password=None, **extra_fields):
        if not phone:
            raise ValueError("Users must have a phone number")
        user = self.model(phone=phone.strip(), **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, phone, password=None, **extra_fields):
        extra_fields["role"] = User.ROLE_ADMIN
        return self.create_user(phone, password, **extra_fields)


class User(AbstractBaseUser):
    ROLE_USER = 'USER'
    ROLE_ADMIN = 'ADMIN'
    ROLE_CHOICES = [
        (ROLE_USER, 'Customer'),
        (ROLE_ADMIN, 'Administrator'),
    ]

    phone = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=150, blank=True)
    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_USER)
    is_active = models.BooleanField(default=True)
    date_joined = models.DateTimeField(default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = 'phone'
    REQUIRED_FIELDS = ['name']

    def __str__(self):
        return f"{self.name or 'User'} ({self.phone})"

    @property
    def is_admin(self):
        return self.role == self.ROLE_ADMIN

    # Django admin access is tied to the ADMIN role
    @property
    def is_staff(self):
        return self.is_admin

    def has_perm(self, perm, obj=None):
        return self.is_active and self.is_admin

    def has_module_perms(self, app_label):
        return self.is_active and self.is_admin

    def to_dict(self):
        return {
            'id': self.pk,
            'phone': self.phone,
            'name': self.name,
            'role': self.role,
            'createdAt': self.date_joined.isoformat(),
        }


# ------------------------------
# CATEGORY MODEL
# ------------------------------
class Category(models.Model):
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=120, unique=True)

    class Meta:
        ordering = ['name']
        verbose_name_plural = 'categories'

    def __str__(self):
        return self.name

    def to_dict(self):
        return {'id': self.pk, 'name': self.name, 'slug': self.slug}


# ------------------------------
# PRODUCT MODEL
# ------------------------------
class Product(models.Model):
    DEFAULT_UNIT = 'Cái'

    category = models.ForeignKey(
        Category,
        on_delete=models.PROTECT,
        related_name="products"
    )
    name = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True)
    description = models.TextField(blank=True)
    unit = models.CharField(max_length=30, default=DEFAULT_UNIT)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.name

    def to_dict(self):
        return {
            'id': self.pk,
            'name': self.name,
            'slug': self.slug,
            'description': self.description,
            'unit': self.unit,
            'categoryId': self.category_id,
            'category': self.category.to_dict(),
            'images': [image.to_dict() for image in self.images.all()],
            'variants': [variant.to_dict() for variant in self.variants.all()],
            'createdAt': self.created_at.isoformat(),
        }


class ProductVariant(models.Model):
    DEFAULT_NAME = 'Mặc định'

    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='variants')
    name = models.CharField(max_length=100, default=DEFAULT_NAME)
    sku = models.CharField(max_length=100, unique=True)
    price = models.PositiveIntegerField()
    stock = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['pk']

    def __str__(self):
        if self.name and self.name != self.DEFAULT_NAME:
            return f"{self.product.name} ({self.name})"
        return self.product.name

    def to_dict(self):
        return {
            'id': self.pk,
            'productId': self.product_id,
            'name': self.name,
            'sku': self.sku,
            'price': self.price,
            'stock': self.stock,
        }


class ProductImage(models.Model):
    """
    A product picture: either a URL hosted elsewhere (what the storefront
    admin sends) or a file uploaded through the Django admin to Cloudinary.
    """
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='images')
    url = models.URLField(max_length=500, blank=True)
    image = CloudinaryField('image', folder='products/', blank=True, null=True)
    position = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ['position', 'pk']

    def __str__(self):
        return self.src or f"Image #{self.pk}"

    @property
    def src(self):
        if self.url:
            return self.url
        if self.image:
            return self.image.url
        return ''

    def to_dict(self):
        return {'id': self.pk, 'url': self.src}


# ------------------------------
# ORDER MODEL
# ------------------------------
class Order(models.Model):
    STATUS_PENDING_COD = 'PENDING_COD'
    STATUS_PENDING_PAYOS = 'PENDING_PAYOS'
    STATUS_PAID_PENDING_CONFIRM = 'PAID_PENDING_CONFIRM'
    STATUS_PAID_AND_CONFIRMED = 'PAID_AND_CONFIRMED'
    STATUS_CANCELLED = 'CANCELLED'

    STATUS_CHOICES = [
        (STATUS_PENDING_COD, 'Cash on delivery, awaiting confirmation'),
        (STATUS_PENDING_PAYOS, 'Awaiting QR payment'),
        (STATUS_PAID_PENDING_CONFIRM, 'Paid, awaiting confirmation'),
        (STATUS_PAID_AND_CONFIRMED, 'Paid and confirmed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    TERMINAL_STATUSES = (STATUS_PAID_AND_CONFIRMED, STATUS_CANCELLED)
    APPROVABLE_STATUSES = (STATUS_PENDING_COD, STATUS_PAID_PENDING_CONFIRM)
    PENDING_STATUSES = (STATUS_PENDING_COD, STATUS_PENDING_PAYOS, STATUS_PAID_PENDING_CONFIRM)

    PAYMENT_COD = 'COD'
    PAYMENT_PAYOS = 'PAYOS'
    PAYMENT_CHOICES = [
        (PAYMENT_COD, 'Cash on delivery'),
        (PAYMENT_PAYOS, 'PayOS QR transfer'),
    ]

    order_code = models.BigIntegerField(unique=True)
    user = models.ForeignKey(
        'User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='orders'
    )
    customer_name = models.CharField(max_length=150, blank=True)
    phone = models.CharField(max_length=20, db_index=True)
    address = models.CharField(max_length=500, blank=True)

    total = models.PositiveBigIntegerField(default=0)
    payment_method = models.CharField(max_length=10, choices=PAYMENT_CHOICES)
    status = models.CharField(max_length=25, choices=STATUS_CHOICES)
    checkout_url = models.URLField(max_length=500, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"Order #{self.order_code} - {self.customer_name or self.phone}"

    @property
    def is_terminal(self):
        return self.status in self.TERMINAL_STATUSES

    def get_total_price(self):
        return sum(item.price * item.quantity for item in self.items.all())

    def to_dict(self, with_items=True):
        data = {
            'id': self.pk,
            # big integers travel as strings so JS clients keep every digit
            'orderCode': str(self.order_code),
            'userId': self.user_id,
            'customerName': self.customer_name,
            'phone': self.phone,
            'address': self.address,
            'total': self.total,
            'paymentMethod': self.payment_method,
            'status': self.status,
            'checkoutUrl': self.checkout_url or None,
            'createdAt': self.created_at.isoformat(),
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
        if with_items:
            data['items'] = [item.to_dict() for item in self.items.all()]
        return data


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='items')
    variant = models.ForeignKey(
        ProductVariant,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='order_items'
    )
    product_name = models.CharField(max_length=255)
    quantity = models.PositiveIntegerField()
    price = models.PositiveIntegerField()

    class Meta:
        ordering = ['pk']

    def __str__(self):
        return f"{self.product_name} × {self.quantity}"

    @property
    def line_total(self):
        return self.price * self.quantity

    def to_dict(self):
        return {
            'id': self.pk,
            'variantId': self.variant_id,
            'productName': self.product_name,
            'quantity': self.quantity,
            'price': self.price,
        }


# ------------------------------
# REVIEW MODEL
# ------------------------------
class Review(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name='reviews')
    user = models.ForeignKey(User, on_delete=models.CASCADE, related_name='reviews')
    rating = models.PositiveSmallIntegerField()
    comment = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.user} → {self.product} ({self.rating}★)"

    def to_dict(self):
        return {
            'id': self.pk,
            'productId': self.product_id,
            'userId': self.user_id,
            'rating': self.rating,
            'comment': self.comment,
            'createdAt': self.created_at.isoformat(),
            'user': {'name': self.user.name},
        }


# ------------------------------
# CONTACT MODEL
# ------------------------------
class Contact(models.Model):
    STATUS_PENDING = 'PENDING'
    STATUS_RESOLVED = 'RESOLVED'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_RESOLVED, 'Resolved'),
    ]

    name = models.CharField(max_length=150)
    phone = models.CharField(max_length=20)
    message = models.TextField()
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.name} ({self.phone}) - {self.status}"

    def to_dict(self):
        return {
            'id': self.pk,
            'name': self.name,
            'phone': self.phone,
            'message': self.message,
            'status': self.status,
            'createdAt': self.created_at.isoformat(),
        }
