"""
Bearer tokens for the storefront API.

Tokens are ``django.core.signing`` payloads carrying the user id and role.
They expire after ``SHOP_TOKEN_MAX_AGE`` (7 days).
"""
import logging
from functools import wraps

from django.conf import settings
from django.core import signing

from .exceptions import AuthenticationFailed, PermissionDenied, ValidationFailed, DuplicateError
from .models import User
from .shop_utils import clean_str

logger = logging.getLogger(__name__)

TOKEN_SALT = "shop.auth.token"


def issue_token(user):
    return signing.dumps({"id": user.pk, "role": user.role}, salt=TOKEN_SALT)


def decode_token(token):
    """Return the token payload or raise AuthenticationFailed."""
    max_age = settings.SHOP_TOKEN_MAX_AGE
    try:
        payload = signing.loads(token, salt=TOKEN_SALT, max_age=max_age)
    except signing.SignatureExpired:
        raise AuthenticationFailed("Token đã hết hạn")
    except signing.BadSignature:
        raise AuthenticationFailed("Token không hợp lệ")
    if not isinstance(payload, dict) or "id" not in payload:
        raise AuthenticationFailed("Token không hợp lệ")
    return payload


def bearer_token(request):
    header = request.headers.get("Authorization", "")
    if not header.startswith("Bearer "):
        return None
    return header[len("Bearer "):].strip() or None


# -------------------------------
# Account operations
# -------------------------------
def register_user(phone, password, name=""):
    phone = clean_str(phone, "phone")
    if password is not None and not isinstance(password, str):
        raise ValidationFailed("Mật khẩu không hợp lệ.")
    if not phone or not password:
        raise ValidationFailed("Vui lòng nhập số điện thoại và mật khẩu.")
    if User.objects.filter(phone=phone).exists():
        raise DuplicateError("Số điện thoại này đã được đăng ký!")
    user = User.objects.create_user(phone, password, name=clean_str(name, "name"))
    logger.info("Registered user %s", user.pk)
    return user


def authenticate_user(phone, password):
    phone = clean_str(phone, "phone")
    if not isinstance(password, str):
        password = ""
    user = User.objects.filter(phone=phone).first() if phone else None
    if user is None or not user.is_active or not user.check_password(password):
        raise ValidationFailed("Số điện thoại hoặc mật khẩu không đúng!")
    return user


# -------------------------------
# View decorators
# -------------------------------
def token_required(view):
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        if request.token_error is not None:
            raise request.token_error
        if request.token_payload is None:
            raise AuthenticationFailed()
        return view(request, *args, **kwargs)
    return wrapper


def admin_required(view):
    @wraps(view)
    @token_required
    def wrapper(request, *args, **kwargs):
        if request.token_payload.get("role") != User.ROLE_ADMIN:
            raise PermissionDenied()
        return view(request, *args, **kwargs)
    return wrapper


def token_user(request):
    """The User behind a valid token, or None for guests."""
    payload = getattr(request, "token_payload", None)
    if not payload:
        return None
    return User.objects.filter(pk=payload["id"], is_active=True).first()
