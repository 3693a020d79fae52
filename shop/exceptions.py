class ShopError(Exception):
    """Base for errors that map to a client-facing JSON response."""
    status = 400
    default_message = "Yêu cầu không hợp lệ."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(ShopError):
    status = 400


class DuplicateError(ShopError):
    status = 400


class NotFound(ShopError):
    status = 404
    default_message = "Không tìm thấy dữ liệu."


class InsufficientStock(ShopError):
    status = 400


class OrderAlreadyProcessed(ShopError):
    status = 400
    default_message = "Đơn hàng này đã được xử lý xong hoặc đã bị hủy."


class InvalidTransition(ShopError):
    status = 400


class RateLimited(ShopError):
    status = 429
    default_message = "Thao tác quá nhanh, vui lòng thử lại sau ít phút."


class AuthenticationFailed(ShopError):
    status = 401
    default_message = "Không có token"


class PermissionDenied(ShopError):
    status = 403
    default_message = "Quyền truy cập bị từ chối: Chỉ dành cho quản trị viên!"


class WebhookVerificationError(ShopError):
    status = 400
    default_message = "Webhook signature verification failed."


class PaymentGatewayError(ShopError):
    status = 502
    default_message = "Không tạo được link thanh toán, vui lòng thử lại sau."
