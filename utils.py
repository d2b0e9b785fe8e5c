import io
import sys

USER_AGENT = "ads/1.0"


def build_headers(api_key: str, stream: bool = False):
    """构建请求头 (Bearer 认证)"""
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }
    if stream:
        headers["Accept"] = "text/event-stream"
    return headers


def setup_utf8() -> None:
    """Force UTF-8 encoding"""
    if sys.platform == "win32":
        import ctypes
        try:
            kernel32 = ctypes.windll.kernel32
            kernel32.SetConsoleCP(65001)
            kernel32.SetConsoleOutputCP(65001)
        except Exception:
            pass

    if hasattr(sys.stdout, "buffer"):
        sys.stdout = io.TextIOWrapper(
            sys.stdout.buffer,
            encoding="utf-8",
            errors="replace",
            line_buffering=True,
        )
