"""
재시도 정책

일시적 오류(네트워크, 요청 한도 초과)에 대해 지수 백오프와 무작위 지터로 재시도합니다.
지터 비율이 1 미만이므로 대기 시간은 시도마다 엄격하게 증가합니다.
"""

import asyncio
import random
from typing import Awaitable, Callable, Optional, TypeVar

from ..domain.errors import FatalError, TransientError
from ..domain.ports import LoggerPort

T = TypeVar("T")


class RetryPolicy:
    """지수 백오프 재시도 정책"""

    def __init__(
        self,
        max_attempts: int = 5,
        base_delay: float = 1.0,
        jitter: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: Callable[[], float] = random.random,
        logger: Optional[LoggerPort] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts는 1 이상이어야 합니다")
        if not 0 <= jitter < 1:
            raise ValueError("jitter는 0 이상 1 미만이어야 합니다")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.jitter = jitter
        self.sleep = sleep
        self.rng = rng
        self.logger = logger

    def delay_for(self, retry_index: int) -> float:
        """retry_index번째 재시도 전 대기 시간(초)"""
        return self.base_delay * (2 ** retry_index) * (1 + self.jitter * self.rng())

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        account: Optional[str] = None,
    ) -> T:
        """
        작업을 실행하고 일시적 오류 시 재시도합니다.

        Args:
            operation: 실행할 비동기 작업
            account: 오류에 표시할 계정 식별자

        Returns:
            작업 결과

        Raises:
            FatalError: 재시도 한도를 모두 소진한 경우
        """
        last_error: Optional[TransientError] = None

        for attempt in range(self.max_attempts):
            try:
                return await operation()
            except TransientError as e:
                last_error = e
                if attempt + 1 >= self.max_attempts:
                    break
                delay = self.delay_for(attempt)
                if self.logger:
                    self.logger.warning(
                        f"일시적 오류, {delay:.2f}초 후 재시도 ({attempt + 1}/{self.max_attempts}): {e.message}"
                    )
                await self.sleep(delay)

        raise FatalError(
            f"재시도 {self.max_attempts}회 후에도 실패했습니다: {last_error.message}",
            account=account or last_error.account,
            remediation="잠시 후 다시 시도하세요",
        ) from last_error
