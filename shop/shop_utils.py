# shop/shop_utils.py
import json
import logging
import math
import re
import unicodedata
from functools import wraps

from django.http import JsonResponse

from .exceptions import ShopError, ValidationFailed

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 100


def ok(data=None, message=None, status=200, **extra):
    """The ``{success, message?, data?}`` envelope every endpoint answers with."""
    body = {'success': True}
    if message is not None:
        body['message'] = message
    if data is not None:
        body['data'] = data
    body.update(extra)
    return JsonResponse(body, status=status, json_dumps_params={'ensure_ascii': False})


def fail(message, status=400):
    return JsonResponse(
        {'success': False, 'message': message},
        status=status,
        json_dumps_params={'ensure_ascii': False},
    )


def json_view(view):
    """
    Turn ShopError into its JSON error response. Anything else is logged
    with its traceback and answered with a generic 500.
    """
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except ShopError as e:
            return fail(e.message, status=e.status)
        except Exception:
            logger.exception("Unhandled error on %s %s", request.method, request.path)
            return fail("Lỗi server", status=500)
    return wrapper


def json_body(request):
    if not request.body:
        return {}
    try:
        data = json.loads(request.body)
    except (ValueError, UnicodeDecodeError):
        raise ValidationFailed("Dữ liệu JSON không hợp lệ.")
    if not isinstance(data, dict):
        raise ValidationFailed("Dữ liệu JSON không hợp lệ.")
    return data


def clean_str(value, field):
    """Stripped text from a JSON field; None becomes ''."""
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationFailed(f"Giá trị {field} không hợp lệ.")
    return value.strip()


def parse_int(value, field, minimum=None):
    # JSON true/false and fractional numbers are not counts or prices
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValidationFailed(f"Giá trị {field} không hợp lệ.")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"Giá trị {field} không hợp lệ.")
    if minimum is not None and number < minimum:
        raise ValidationFailed(f"Giá trị {field} không hợp lệ.")
    return number


def paginate(request, queryset):
    """Slice a queryset by ?page=&limit= and describe the slice."""
    try:
        page = max(int(request.GET.get('page', 1)), 1)
    except ValueError:
        page = 1
    try:
        limit = min(max(int(request.GET.get('limit', DEFAULT_PAGE_SIZE)), 1), MAX_PAGE_SIZE)
    except ValueError:
        limit = DEFAULT_PAGE_SIZE

    total_items = queryset.count()
    offset = (page - 1) * limit
    rows = list(queryset[offset:offset + limit])
    pagination = {
        'currentPage': page,
        'totalPages': math.ceil(total_items / limit),
        'totalItems': total_items,
        'limit': limit,
    }
    return rows, pagination


def slugify_vi(text):
    """
    ASCII slug for Vietnamese names: 'Vòi xịt vệ sinh Inox 304' -> 'voi-xit-ve-sinh-inox-304'.
    """
    text = (text or '').lower().replace('đ', 'd')
    text = unicodedata.normalize('NFD', text)
    text = ''.join(c for c in text if unicodedata.category(c) != 'Mn')
    text = re.sub(r'[^0-9a-z\-\s]', '', text)
    text = re.sub(r'\s+', '-', text)
    text = re.sub(r'-+', '-', text)
    return text.strip('-')
