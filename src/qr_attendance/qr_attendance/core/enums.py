from __future__ import annotations

from enum import Enum


class SyncItemType(str, Enum):
    """Loại thao tác nằm trong hàng đợi đồng bộ."""

    ATTENDANCE = "attendance"
    EVENT = "event"


class SyncAction(str, Enum):
    CREATE = "create"


class BulkResultStatus(str, Enum):
    """Kết quả xử lý từng bản ghi khi đồng bộ hàng loạt."""

    CREATED = "created"
    DUPLICATE = "duplicate"
