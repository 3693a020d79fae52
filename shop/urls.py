from django.urls import path
from . import views

urlpatterns = [
    # auth
    path('auth/register', views.register, name='register'),
    path('auth/login', views.login, name='login'),

    # catalog
    path('categories', views.categories, name='categories'),
    path('categories/<int:category_id>', views.category_detail, name='category_detail'),
    path('search/suggest', views.search_suggest, name='search_suggest'),
    path('products', views.products, name='products'),
    path('products/<int:product_id>/reviews', views.product_reviews, name='product_reviews'),
    path('products/<str:key>', views.product_detail, name='product_detail'),
    path('reviews', views.create_review, name='create_review'),

    # orders
    path('orders', views.create_order, name='create_order'),
    path('orders/track', views.track_order, name='track_order'),
    path('orders/webhook', views.payment_webhook, name='payment_webhook'),
    path('orders/admin/all', views.admin_orders, name='admin_orders'),
    path('orders/approve/<int:order_id>', views.approve_order, name='approve_order'),
    path('orders/cancel/<int:order_id>', views.cancel_order, name='cancel_order'),

    # contact
    path('contacts', views.submit_contact, name='submit_contact'),
    path('contacts/admin/all', views.admin_contacts, name='admin_contacts'),
    path('contacts/resolve/<int:contact_id>', views.resolve_contact, name='resolve_contact'),

    # admin dashboard
    path('admin/notifications', views.admin_notifications, name='admin_notifications'),
    path('admin/dashboard', views.dashboard, name='dashboard'),
]
