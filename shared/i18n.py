"""Localized, user-facing messages for stable error and status codes."""

DEFAULT_LANGUAGE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        "UNAUTHORIZED": "Could not validate credentials",
        "FORBIDDEN": "You are not allowed to perform this action",
        "VALIDATION_FAILED": "The request is invalid",
        "NOT_FOUND": "Resource not found",
        "ADDRESS_NOT_FOUND": "Address not found",
        "PRODUCT_NOT_FOUND": "Product not found",
        "ORDER_NOT_FOUND": "Order not found",
        "CART_EMPTY": "Your cart is empty",
        "CART_CURRENCY_MISMATCH": "All cart items must use the same currency",
        "INSUFFICIENT_STOCK": "Insufficient stock",
        "INVALID_QUANTITY": "Quantity must be a positive integer",
        "INVALID_STATE": "The order is not in a valid state for this action",
        "INVALID_ORDER_STATUS_TRANSITION": "This status change is not allowed",
        "ORDER_ALREADY_FINALIZED": "Order is already finalized",
        "DELIVERED_ORDER_CANNOT_CHANGE": "Delivered order cannot be updated",
        "ORDER_CANNOT_BE_CANCELLED": "Order can no longer be cancelled",
        "ORDER_NOT_PAYABLE": "Order is not payable",
        "INVALID_SIGNATURE": "Invalid signature",
        "PAYMENT_PROVIDER_ERROR": "The payment provider could not process the request",
        "ORDER_CREATED": "Order created",
        "ORDER_CANCELLED": "Order cancelled successfully",
        "ORDER_ALREADY_CANCELLED": "Order already cancelled",
        "ORDER_STATUS_UPDATED": "Order status updated",
        "METHOD_NOT_ALLOWED": "Method not allowed",
        "RATE_LIMITED": "Too many requests, please try again later",
        "HTTP_ERROR": "The request could not be processed",
        "INTERNAL_ERROR": "Internal Server Error",
    },
    "ar": {
        "UNAUTHORIZED": "تعذر التحقق من بيانات الاعتماد",
        "FORBIDDEN": "غير مسموح لك بتنفيذ هذا الإجراء",
        "VALIDATION_FAILED": "الطلب غير صالح",
        "NOT_FOUND": "المورد غير موجود",
        "ADDRESS_NOT_FOUND": "العنوان غير موجود",
        "PRODUCT_NOT_FOUND": "المنتج غير موجود",
        "ORDER_NOT_FOUND": "الطلب غير موجود",
        "CART_EMPTY": "سلة التسوق فارغة",
        "CART_CURRENCY_MISMATCH": "يجب أن تكون جميع المنتجات في السلة بنفس العملة",
        "INSUFFICIENT_STOCK": "الكمية المتوفرة غير كافية",
        "INVALID_QUANTITY": "يجب أن تكون الكمية عددًا صحيحًا موجبًا",
        "INVALID_STATE": "حالة الطلب لا تسمح بهذا الإجراء",
        "INVALID_ORDER_STATUS_TRANSITION": "تغيير الحالة هذا غير مسموح",
        "ORDER_ALREADY_FINALIZED": "تم إنهاء الطلب بالفعل",
        "DELIVERED_ORDER_CANNOT_CHANGE": "لا يمكن تعديل طلب تم تسليمه",
        "ORDER_CANNOT_BE_CANCELLED": "لم يعد بالإمكان إلغاء الطلب",
        "ORDER_NOT_PAYABLE": "لا يمكن دفع هذا الطلب",
        "INVALID_SIGNATURE": "توقيع غير صالح",
        "PAYMENT_PROVIDER_ERROR": "تعذر على مزود الدفع معالجة الطلب",
        "ORDER_CREATED": "تم إنشاء الطلب",
        "ORDER_CANCELLED": "تم إلغاء الطلب بنجاح",
        "ORDER_ALREADY_CANCELLED": "الطلب ملغى بالفعل",
        "ORDER_STATUS_UPDATED": "تم تحديث حالة الطلب",
        "METHOD_NOT_ALLOWED": "الطريقة غير مسموح بها",
        "RATE_LIMITED": "طلبات كثيرة جدًا، يرجى المحاولة لاحقًا",
        "HTTP_ERROR": "تعذرت معالجة الطلب",
        "INTERNAL_ERROR": "خطأ داخلي في الخادم",
    },
}


def resolve_language(accept_language: str | None) -> str:
    """Pick the first supported language from an Accept-Language header."""
    if not accept_language:
        return DEFAULT_LANGUAGE
    for part in accept_language.split(","):
        tag = part.split(";")[0].strip().lower()
        primary = tag.split("-")[0]
        if primary in MESSAGES:
            return primary
    return DEFAULT_LANGUAGE


def translate(code: str, lang: str = DEFAULT_LANGUAGE) -> str:
    catalog = MESSAGES.get(lang, MESSAGES[DEFAULT_LANGUAGE])
    return catalog.get(code) or MESSAGES[DEFAULT_LANGUAGE].get(code, code)
