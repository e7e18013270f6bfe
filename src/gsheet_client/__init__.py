"""
Google Sheets Delivery Client

Rate-limited, schema-mapping batch writer for a capacity-constrained
spreadsheet sink. Also reads the sink-side filtering/retention policy and
evicts aged rows.

Usage:
    from gsheet_client import DeliveryClient, GoogleSheetsTransport, Sample

    client = DeliveryClient(GoogleSheetsTransport("spreadsheet-id", access_token="..."))
    policy = await client.fetch_policy(timeout=10)
    await client.write([Sample(...)], make_room=False, timeout=120)
"""

from .client import DeliveryClient, parse_cutoff, parse_policy
from .errors import (
    EvictionError,
    GSheetOperationalError,
    PolicyFetchError,
    RateLimitWaitError,
    SheetsAPIError,
    SinkCallError,
    SinkCapacityError,
)
from .models import Policy, Sample
from .ratelimit import TokenBucketLimiter
from .rows import LabelColumnMap, RowMapper
from .transport import GoogleSheetsTransport, SheetTransport

__version__ = "1.0.0"
__all__ = [
    "DeliveryClient",
    "GoogleSheetsTransport",
    "SheetTransport",
    "TokenBucketLimiter",
    "LabelColumnMap",
    "RowMapper",
    "Sample",
    "Policy",
    "parse_policy",
    "parse_cutoff",
    "GSheetOperationalError",
    "SinkCallError",
    "SinkCapacityError",
    "SheetsAPIError",
    "RateLimitWaitError",
    "PolicyFetchError",
    "EvictionError",
]
