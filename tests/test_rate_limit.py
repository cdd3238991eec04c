"""
Client error rate limiter tests
客户端错误限流测试
"""

from moji.utils.rate_limit import (
    ErrorRateLimiter, SafariErrorRateLimiter, rate_limited_handler, voice_error_key,
    VOICE_NOT_ALLOWED, VOICE_NO_SPEECH,
)

KEY = "voice-network"


class TestErrorRateLimiter:
    """错误限流器测试"""

    def test_allows_up_to_max_errors_in_window(self):
        limiter = ErrorRateLimiter(window_ms=5000, max_errors=3, cooldown_ms=10000)
        assert limiter.should_process(KEY, current_time=0)
        assert limiter.should_process(KEY, current_time=100)
        assert limiter.should_process(KEY, current_time=200)
        assert limiter.get_error_count(KEY) == 3

        assert not limiter.should_process(KEY, current_time=300)
        assert limiter.is_in_cooldown(KEY, current_time=300)
        assert limiter.get_cooldown_remaining(KEY, current_time=300) > 0

    def test_new_window_resets_count(self):
        limiter = ErrorRateLimiter(window_ms=5000, max_errors=3, cooldown_ms=10000)
        limiter.should_process(KEY, current_time=0)
        limiter.should_process(KEY, current_time=100)
        assert limiter.should_process(KEY, current_time=6000)
        assert limiter.get_error_count(KEY) == 1

    def test_processing_resumes_after_cooldown(self):
        limiter = ErrorRateLimiter(window_ms=5000, max_errors=3, cooldown_ms=10000)
        for t in (0, 1, 2):
            limiter.should_process(KEY, current_time=t)
        assert not limiter.should_process(KEY, current_time=4000)
        assert limiter.should_process(KEY, current_time=16000)
        assert not limiter.is_in_cooldown(KEY, current_time=16000)
        assert limiter.get_cooldown_remaining(KEY, current_time=16000) == 0

    def test_keys_are_independent(self):
        limiter = ErrorRateLimiter(window_ms=5000, max_errors=1, cooldown_ms=10000)
        assert limiter.should_process("a", current_time=0)
        assert not limiter.should_process("a", current_time=1)
        assert limiter.should_process("b", current_time=1)

    def test_safari_limits_are_stricter(self):
        limiter = SafariErrorRateLimiter()
        assert limiter.should_process(KEY, current_time=0)
        assert limiter.should_process(KEY, current_time=10)
        assert not limiter.should_process(KEY, current_time=20)

    def test_clear_and_cleanup(self):
        limiter = ErrorRateLimiter(window_ms=5000, max_errors=3, cooldown_ms=10000)
        limiter.should_process("old", current_time=0)
        limiter.should_process("recent", current_time=70000)

        assert limiter.cleanup(current_time=80000) == 1
        assert limiter.get_error_count("old") == 0
        assert limiter.get_error_count("recent") == 1

        limiter.clear_error("recent")
        assert limiter.get_error_count("recent") == 0

        limiter.should_process("x", current_time=0)
        limiter.clear()
        assert limiter.errors == {}


class TestRateLimitedHandler:
    def test_calls_on_error_until_limited(self):
        limiter = ErrorRateLimiter(window_ms=60000, max_errors=2, cooldown_ms=60000)
        handled = []
        limited = []
        handle = rate_limited_handler(
            limiter,
            lambda message, count: handled.append((message, count)),
            lambda key, cooldown: limited.append(key),
        )

        assert handle(KEY, "network down")
        assert handle(KEY, "network down")
        assert not handle(KEY, "network down")

        assert handled == [("network down", 1), ("network down", 2)]
        assert limited == [KEY]

    def test_voice_error_keys(self):
        assert voice_error_key("not-allowed") == VOICE_NOT_ALLOWED
        assert voice_error_key("no-speech") == VOICE_NO_SPEECH
        assert voice_error_key("bad-grammar") == "voice-bad-grammar"
