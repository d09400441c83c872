"""
Static constants configuration.

Operational defaults (timeouts, pool sizes, schedules) that environment
variables may override, plus fixed business constants.
"""

# Default Timeouts (seconds)
DEFAULT_HTTP_TIMEOUT = 30
GATEWAY_HTTP_TIMEOUT = 15

# Retry Configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 60  # seconds
GATEWAY_RETRY_MIN_WAIT_MS = 500
GATEWAY_RETRY_MAX_WAIT_MS = 4000

# Database Pool Configuration
DEFAULT_POOL_SIZE = 20
DEFAULT_MAX_OVERFLOW = 40
DEFAULT_POOL_TIMEOUT = 30
DEFAULT_POOL_RECYCLE = 3600  # 1 hour

# Task Configuration
TASK_TIME_LIMIT = 1800  # 30 minutes
TASK_SOFT_TIME_LIMIT = 1500

# Billing schedules (UTC)
LATE_FEE_RUN_HOUR = 1
INVOICE_GENERATION_RUN_HOUR = 2

# Invoices are due this many days after generation
DEFAULT_INVOICE_DUE_DAYS = 10

# Currency
DEFAULT_BILLING_CURRENCY = "INR"
# Razorpay amounts are expressed in the smallest currency unit (paise)
CURRENCY_SUBUNITS = 100
