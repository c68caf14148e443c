"""
프로세스 확인 어댑터

psutil로 네이티브 메일 클라이언트가 실행 중인지 확인합니다.
"""

import asyncio

import psutil

from core.domain.ports import LoggerPort, ProcessProbePort


class PsutilProcessProbeAdapter(ProcessProbePort):
    """psutil 기반 프로세스 확인"""

    def __init__(self, logger: LoggerPort):
        self.logger = logger

    async def is_running(self, process_name: str) -> bool:
        running = await asyncio.to_thread(self._scan, process_name)
        self.logger.debug(f"프로세스 실행 여부: {process_name}={running}")
        return running

    def _scan(self, process_name: str) -> bool:
        for process in psutil.process_iter(["name"]):
            try:
                if process.info.get("name") == process_name:
                    return True
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        return False
