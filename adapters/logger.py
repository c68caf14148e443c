"""
로거 어댑터

Core 레이어의 LoggerPort를 구현하는 Python 표준 로깅 어댑터입니다.
OAuth 토큰과 인증 코드는 출력 전에 가려집니다.
"""

import logging
import re
import sys
from typing import Any, Dict

from core.domain.ports import LoggerPort

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
REDACTED = "***"

# 값이 통째로 가려지는 컨텍스트 키
SECRET_KEYS = {"access_token", "refresh_token", "id_token", "code", "code_verifier", "client_secret", "authorization"}

_SECRET_PATTERNS = [
    re.compile(r"(?i)(bearer\s+)[A-Za-z0-9._~+/=-]+"),
    re.compile(r"(?i)((?:access_token|refresh_token|id_token|code_verifier|client_secret)[\"']?\s*[=:]\s*[\"']?)[^\s,&\"'}]+"),
    re.compile(r"()\bya29\.[A-Za-z0-9._-]+"),
    re.compile(r"()\b1//[A-Za-z0-9._-]{10,}"),
]


def redact(text: str) -> str:
    """문자열 속 토큰 값을 가립니다."""
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda match: match.group(1) + REDACTED, text)
    return text


def _redact_context(context: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: REDACTED if key.lower() in SECRET_KEYS else redact(str(value))
        for key, value in context.items()
    }


class SecretRedactionFilter(logging.Filter):
    """레코드 메시지와 컨텍스트의 토큰 값을 가리는 필터"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = redact(record.getMessage())
        record.args = None
        context = getattr(record, "context", None)
        if context:
            record.context = _redact_context(context)
        return True


class ContextFormatter(logging.Formatter):
    """키워드 컨텍스트를 메시지 뒤에 key=value 형태로 붙이는 포매터"""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            line += " | " + " ".join(f"{key}={value}" for key, value in sorted(context.items()))
        return line


class LoggerAdapter(LoggerPort):
    """Python 표준 로깅을 사용하는 로거 어댑터"""

    def __init__(
        self,
        name: str = "sigsync",
        level: str = "INFO",
        format_string: str = DEFAULT_FORMAT,
    ):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        # 핸들러가 없으면 콘솔 핸들러 추가
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(ContextFormatter(format_string))
            handler.addFilter(SecretRedactionFilter())
            self.logger.addHandler(handler)

    def _log(self, level: int, message: str, context: Dict[str, Any]) -> None:
        # LogRecord 예약 속성과 겹치지 않도록 컨텍스트는 한 속성에 묶음
        self.logger.log(level, message, extra={"context": context})

    def info(self, message: str, **kwargs) -> None:
        self._log(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._log(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._log(logging.ERROR, message, kwargs)

    def debug(self, message: str, **kwargs) -> None:
        """디버그 로그"""
        self._log(logging.DEBUG, message, kwargs)


def create_logger(name: str = "sigsync", level: str = "INFO", format_string: str = DEFAULT_FORMAT) -> LoggerPort:
    """로거 인스턴스를 생성합니다."""
    return LoggerAdapter(name, level, format_string)
