"""Global constants for the HawkerHub application."""

# Collection names
USERS_COLLECTION = "users"
PRODUCTS_COLLECTION = "products"
ORDERS_COLLECTION = "orders"
GROUP_ORDERS_COLLECTION = "groupOrders"
RATINGS_COLLECTION = "ratings"
CHATS_COLLECTION = "chats"
NOTIFICATIONS_COLLECTION = "notifications"
REVIEWS_COLLECTION = "reviews"

# User roles
ROLE_VENDOR = "vendor"
ROLE_SUPPLIER = "supplier"
USER_ROLES = (ROLE_VENDOR, ROLE_SUPPLIER)

# Group order statuses
GROUP_ORDER_OPEN = "open"
GROUP_ORDER_CLOSED = "closed"

# Order statuses
ORDER_PENDING = "pending"
ORDER_CONFIRMED = "confirmed"
ORDER_PROCESSING = "processing"
ORDER_SHIPPED = "shipped"
ORDER_DELIVERED = "delivered"
ORDER_CANCELLED = "cancelled"
ORDER_STATUSES = (
    ORDER_PENDING,
    ORDER_CONFIRMED,
    ORDER_PROCESSING,
    ORDER_SHIPPED,
    ORDER_DELIVERED,
    ORDER_CANCELLED,
)

# Chats need at least this many members
MIN_CHAT_MEMBERS = 2

# Rating bounds
MIN_RATING = 1
MAX_RATING = 5

# Suppliers become verified with more than this many ratings at this average
VERIFIED_MIN_RATINGS = 10
VERIFIED_MIN_AVG_RATING = 4.5

# Offline cache
CACHE_TTL_MINUTES = 30
PENDING_OPERATIONS_KEY = "hawkerhub_pending_operations"
CACHED_DATA_KEY = "hawkerhub_cached_data"

# Notifications
DEFAULT_NOTIFICATION_ICON = "/logo192.png"
DEFAULT_NOTIFICATION_TAG = "hawkerhub-notification"
MAX_NOTIFICATIONS = 50

# Email-related constants
SMTP_AUTH_ERROR_CODE = 534
