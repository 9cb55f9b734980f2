"""Ví dụ: quét mã QR trên thiết bị (không qua Flask).

Điểm danh luôn được ghi vào SQLite trước, sau đó mới gửi lên máy chủ.
"""

from src.qr_attendance.qr_attendance.client import build_client
from src.qr_attendance.qr_attendance.common.datetime_utils import now_utc
from src.qr_attendance.qr_attendance.qr.payload import build_attendance_payload, encode_payload, generate_attendance_qr


def main():
    with open("attendance_qr.png", "wb") as f:
        f.write(generate_attendance_qr("E1", "Orientation"))

    client = build_client()
    client.start()
    try:
        raw = encode_payload(build_attendance_payload("E1", "Orientation", now_utc()))
        result = client.recorder.scan(raw, "U1", "Alice")
        print(result.to_json())
        print(client.sync_engine.get_sync_status())
        print(client.monitor.generate_report()["qos"]["reliability"])
    finally:
        client.close()


if __name__ == "__main__":
    main()
