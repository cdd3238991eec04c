"""
Client error rate limiting
客户端错误限流 - 防止浏览器(尤其是 Safari)连续上报的语音识别错误刷屏日志

All times are milliseconds.
"""

import time
import logging
from typing import Dict, Optional, Callable

logger = logging.getLogger(__name__)


def now_ms() -> float:
    return time.time() * 1000


class ErrorRateLimiter:
    """
    按错误 key 计数：窗口内最多处理 max_errors 次，
    达到上限后进入冷却期，冷却结束后重新计数
    """

    def __init__(self, window_ms: int = 5000, max_errors: int = 3, cooldown_ms: int = 10000):
        self.window_ms = window_ms
        self.max_errors = max_errors
        self.cooldown_ms = cooldown_ms
        # key -> {"timestamp": first error in window, "count": errors in window}
        self.errors: Dict[str, Dict[str, float]] = {}

    def should_process(self, error_key: str, current_time: Optional[float] = None) -> bool:
        """True if the error should be handled, False if it is rate limited"""
        current_time = now_ms() if current_time is None else current_time
        entry = self.errors.get(error_key)

        if entry is None:
            self.errors[error_key] = {"timestamp": current_time, "count": 1}
            return True

        if current_time - entry["timestamp"] > self.window_ms:
            self.errors[error_key] = {"timestamp": current_time, "count": 1}
            return True

        if entry["count"] >= self.max_errors:
            if self._since_window_end(entry, current_time) < self.cooldown_ms:
                return False
            self.errors[error_key] = {"timestamp": current_time, "count": 1}
            return True

        entry["count"] += 1
        return True

    def _since_window_end(self, entry: Dict[str, float], current_time: float) -> float:
        return current_time - (entry["timestamp"] + self.window_ms)

    def get_error_count(self, error_key: str) -> int:
        entry = self.errors.get(error_key)
        return int(entry["count"]) if entry else 0

    def is_in_cooldown(self, error_key: str, current_time: Optional[float] = None) -> bool:
        current_time = now_ms() if current_time is None else current_time
        entry = self.errors.get(error_key)
        if not entry or entry["count"] < self.max_errors:
            return False
        return self._since_window_end(entry, current_time) < self.cooldown_ms

    def get_cooldown_remaining(self, error_key: str, current_time: Optional[float] = None) -> float:
        """Milliseconds left in the cooldown, 0 when not cooling down"""
        current_time = now_ms() if current_time is None else current_time
        entry = self.errors.get(error_key)
        if not entry or entry["count"] < self.max_errors:
            return 0
        return max(0, self.cooldown_ms - self._since_window_end(entry, current_time))

    def clear(self) -> None:
        self.errors.clear()

    def clear_error(self, error_key: str) -> None:
        self.errors.pop(error_key, None)

    def cleanup(self, current_time: Optional[float] = None) -> int:
        """Drop entries older than the window/cooldown plus a minute"""
        current_time = now_ms() if current_time is None else current_time
        cutoff = current_time - max(self.window_ms, self.cooldown_ms) - 60000
        stale = [key for key, entry in self.errors.items() if entry["timestamp"] < cutoff]
        for key in stale:
            del self.errors[key]
        return len(stale)


class SafariErrorRateLimiter(ErrorRateLimiter):
    """Safari fires error events in bursts: shorter window, fewer errors, longer cooldown"""

    def __init__(self):
        super().__init__(window_ms=3000, max_errors=2, cooldown_ms=15000)


# 语音识别错误 key
VOICE_NOT_ALLOWED = "voice-not-allowed"
VOICE_NO_SPEECH = "voice-no-speech"
VOICE_AUDIO_CAPTURE = "voice-audio-capture"
VOICE_NETWORK = "voice-network"
VOICE_SERVICE_NOT_ALLOWED = "voice-service-not-allowed"
VOICE_ABORTED = "voice-aborted"
VOICE_PERMISSION_DENIED = "voice-permission-denied"
VOICE_INIT_FAILED = "voice-init-failed"
VOICE_START_FAILED = "voice-start-failed"
VOICE_INVALID_STATE = "voice-invalid-state"

_VOICE_ERROR_KEYS = {
    "not-allowed": VOICE_NOT_ALLOWED,
    "no-speech": VOICE_NO_SPEECH,
    "audio-capture": VOICE_AUDIO_CAPTURE,
    "network": VOICE_NETWORK,
    "service-not-allowed": VOICE_SERVICE_NOT_ALLOWED,
    "aborted": VOICE_ABORTED,
}


def voice_error_key(error: str) -> str:
    """Map a speech recognition error code to its rate limit key"""
    return _VOICE_ERROR_KEYS.get(error, f"voice-{error}")


def rate_limited_handler(
    limiter: ErrorRateLimiter,
    on_error: Callable[[str, int], None],
    on_rate_limited: Optional[Callable[[str, float], None]] = None,
) -> Callable[[str, str], bool]:
    """
    包装错误处理函数：被限流时调用 on_rate_limited 而不是 on_error
    返回的处理函数在错误被处理时返回 True
    """
    def handle(error_key: str, error_message: str) -> bool:
        if limiter.should_process(error_key):
            count = limiter.get_error_count(error_key)
            on_error(error_message, count)
            if count > 1:
                logger.warning(f"[CLIENT_ERROR] Error \"{error_key}\" occurred {count} times")
            return True

        cooldown = limiter.get_cooldown_remaining(error_key)
        logger.warning(f"[CLIENT_ERROR] Error \"{error_key}\" is rate limited ({round(cooldown / 1000)}s cooldown remaining)")
        if on_rate_limited:
            on_rate_limited(error_key, cooldown)
        return False

    return handle


# 全局限流器 - 语音识别错误
voice_error_rate_limiter = ErrorRateLimiter()
safari_voice_error_rate_limiter = SafariErrorRateLimiter()
