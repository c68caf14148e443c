"""로거 어댑터 테스트"""

import io

from adapters.logger import REDACTED, LoggerAdapter, redact


def capture(name):
    adapter = LoggerAdapter(name=name, level="DEBUG")
    stream = io.StringIO()
    adapter.logger.handlers[0].setStream(stream)
    adapter.logger.propagate = False
    return adapter, stream


class TestRedaction:
    """토큰 값 가리기"""

    def test_bearer_header(self):
        assert redact("Authorization: Bearer ya29.a0AfH6SM-abc") == f"Authorization: Bearer {REDACTED}"

    def test_token_fields(self):
        text = redact('{"access_token": "abc.def", "refresh_token": "1//0gXyz-long-token-value", "expires_in": 3599}')
        assert "abc.def" not in text
        assert "1//0gXyz" not in text
        assert '"expires_in": 3599' in text

    def test_plain_message_untouched(self):
        message = "서명 동기화 완료: kim@example.com, status_code=403"
        assert redact(message) == message


class TestLoggerAdapter:
    """출력 형식"""

    def test_message_and_context_are_redacted(self):
        adapter, stream = capture("sigsync-test-redaction")

        adapter.info("토큰 갱신: Bearer ya29.secret-token", email="kim@example.com", refresh_token="1//secret")

        line = stream.getvalue()
        assert "ya29.secret-token" not in line
        assert "1//secret" not in line
        assert f"refresh_token={REDACTED}" in line
        assert "email=kim@example.com" in line

    def test_reserved_context_keys_are_allowed(self):
        """LogRecord 속성과 같은 이름의 컨텍스트도 오류 없이 출력된다"""
        adapter, stream = capture("sigsync-test-reserved")

        adapter.warning("충돌 감지", name="Work", message="changed")

        line = stream.getvalue()
        assert "충돌 감지" in line
        assert "message=changed" in line
        assert "name=Work" in line

    def test_level_threshold(self):
        adapter, stream = capture("sigsync-test-level")
        adapter.logger.setLevel("WARNING")

        adapter.debug("숨김")
        adapter.error("표시")

        assert "숨김" not in stream.getvalue()
        assert "표시" in stream.getvalue()
