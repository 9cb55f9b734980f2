"""Chạy một lượt đồng bộ dữ liệu offline lên máy chủ rồi in trạng thái.

Dùng cho thiết bị quét mã đã lưu điểm danh khi mất mạng.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from src.qr_attendance.qr_attendance.client import build_client


def main() -> int:
    client = build_client()
    try:
        online = client.connectivity.probe()
        if not online:
            print("Server unreachable, nothing synced")
            return 1

        report = client.sync_engine.force_sync_all()
        if report is None:
            print("Sync skipped (another sync is running)")
        else:
            print(f"synced={report.synced} failed={report.failed} dropped={report.dropped} success={report.success}")
        print(json.dumps(client.sync_engine.get_sync_status(), indent=2))
        return 0 if report is None or report.success else 1
    finally:
        client.close()


if __name__ == "__main__":
    raise SystemExit(main())
