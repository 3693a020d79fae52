from django.contrib import admin, messages
from django.utils.html import format_html

from . import orders as order_flow
from .exceptions import ShopError
from .models import Category, Contact, Order, OrderItem, Product, ProductImage, ProductVariant, Review, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('phone', 'name', 'role', 'is_active', 'date_joined')
    list_filter = ('role', 'is_active')
    search_fields = ('phone', 'name')
    exclude = ('password',)
    readonly_fields = ('last_login', 'date_joined')


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug')
    prepopulated_fields = {'slug': ('name',)}


class ProductVariantInline(admin.TabularInline):
    model = ProductVariant
    extra = 0


class ProductImageInline(admin.TabularInline):
    model = ProductImage
    extra = 0
    fields = ('url', 'image', 'position', 'preview_image')
    readonly_fields = ('preview_image',)

    def preview_image(self, obj):
        if obj.src:
            return format_html('<img src="{}" width="80" style="border-radius:8px;" />', obj.src)
        return "No Image"
    preview_image.short_description = "Preview"


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ('name', 'category', 'unit', 'created_at')
    list_filter = ('category',)
    search_fields = ('name', 'slug', 'variants__sku')
    inlines = [ProductVariantInline, ProductImageInline]


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ('variant', 'product_name', 'quantity', 'price')
    can_delete = False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ('order_code', 'customer_name', 'phone', 'total', 'payment_method', 'status', 'created_at')
    list_filter = ('status', 'payment_method', 'created_at')
    search_fields = ('order_code', 'customer_name', 'phone')
    readonly_fields = ('order_code', 'total', 'status', 'checkout_url', 'created_at', 'updated_at')
    inlines = [OrderItemInline]

    actions = ['approve_orders', 'cancel_orders']

    def _run(self, request, queryset, operation, done_message):
        done = 0
        for order in queryset:
            try:
                operation(order.pk)
                done += 1
            except ShopError as e:
                self.message_user(request, f"#{order.order_code}: {e.message}", level=messages.ERROR)
        if done:
            self.message_user(request, done_message.format(count=done), level=messages.SUCCESS)

    def approve_orders(self, request, queryset):
        self._run(request, queryset, order_flow.approve_order, "{count} order(s) approved and stock updated.")
    approve_orders.short_description = "Approve (deduct stock)"

    def cancel_orders(self, request, queryset):
        self._run(request, queryset, order_flow.cancel_order, "{count} order(s) cancelled.")
    cancel_orders.short_description = "Cancel"


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ('product', 'user', 'rating', 'created_at')
    list_filter = ('rating',)


@admin.register(Contact)
class ContactAdmin(admin.ModelAdmin):
    list_display = ('name', 'phone', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('name', 'phone', 'message')
    actions = ['mark_as_resolved']

    def mark_as_resolved(self, request, queryset):
        queryset.update(status=Contact.STATUS_RESOLVED)
    mark_as_resolved.short_description = "Mark as resolved"
