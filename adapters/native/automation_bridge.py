"""
자동화 브리지 어댑터

osascript로 네이티브 메일 클라이언트에 계정 정보를 질의합니다.
macOS가 아니거나 osascript가 없으면 사용할 수 없음으로 보고합니다.
"""

import asyncio
import shutil
import sys
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from core.domain.entities import AutomationStatus
from core.domain.errors import AccessDeniedError
from core.domain.ports import AutomationBridgePort, LoggerPort

# 사용자가 자동화 권한을 거부했을 때 AppleEvent 오류 코드
ERR_AE_NOT_PERMITTED = "-1743"

ScriptRunner = Callable[[str], Awaitable[Tuple[int, str, str]]]

PROBE_SCRIPT = 'tell application "{app}" to count accounts'

ACCOUNTS_SCRIPT = """
tell application "{app}"
    set output to ""
    set AppleScript's text item delimiters to ","
    repeat with acc in accounts
        set accId to id of acc as text
        set accName to name of acc as text
        set accUser to ""
        try
            set accUser to user name of acc as text
        end try
        set accEmails to (email addresses of acc) as text
        set output to output & accId & tab & accName & tab & accUser & tab & accEmails & linefeed
    end repeat
    return output
end tell
"""


class OsaScriptAutomationBridgeAdapter(AutomationBridgePort):
    """osascript 기반 자동화 브리지"""

    def __init__(
        self,
        logger: LoggerPort,
        app_name: str = "Mail",
        timeout: float = 20.0,
        runner: Optional[ScriptRunner] = None,
    ):
        self.logger = logger
        self.app_name = app_name
        self.timeout = timeout
        self.runner = runner or self._run_osascript
        self._uses_osascript = runner is None
        self._status: Optional[AutomationStatus] = None

    async def probe(self) -> AutomationStatus:
        """자동화 사용 가능 여부와 권한을 확인합니다."""
        if self._status is not None:
            return self._status

        if self._uses_osascript and (sys.platform != "darwin" or shutil.which("osascript") is None):
            self._status = AutomationStatus.UNAVAILABLE
            return self._status

        returncode, _, stderr = await self.runner(PROBE_SCRIPT.format(app=self.app_name))
        if returncode == 0:
            self._status = AutomationStatus.AVAILABLE
        elif ERR_AE_NOT_PERMITTED in stderr:
            self._status = AutomationStatus.DENIED
        else:
            self.logger.warning(f"자동화 확인 실패: {stderr.strip()}")
            self._status = AutomationStatus.UNAVAILABLE

        self.logger.debug(f"자동화 상태: {self._status.value}")
        return self._status

    async def list_accounts(self) -> List[Dict[str, Any]]:
        """
        메일 클라이언트 계정 목록을 조회합니다.

        Raises:
            AccessDeniedError: 자동화 권한이 거부된 경우
        """
        returncode, stdout, stderr = await self.runner(ACCOUNTS_SCRIPT.format(app=self.app_name))
        if returncode != 0:
            if ERR_AE_NOT_PERMITTED in stderr:
                raise AccessDeniedError(
                    "메일 클라이언트 자동화 권한이 거부되었습니다",
                    scope=AccessDeniedError.AUTOMATION,
                )
            self.logger.warning(f"자동화 계정 조회 실패: {stderr.strip()}")
            return []
        return parse_account_lines(stdout)

    async def _run_osascript(self, script: str) -> Tuple[int, str, str]:
        try:
            process = await asyncio.create_subprocess_exec(
                "osascript",
                "-e",
                script,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            return 127, "", "osascript를 찾을 수 없습니다"

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return 124, "", "osascript 실행 시간이 초과되었습니다"

        return process.returncode, stdout.decode("utf-8", errors="replace"), stderr.decode("utf-8", errors="replace")


def parse_account_lines(output: str) -> List[Dict[str, Any]]:
    """탭으로 구분된 계정 출력(id, name, user name, emails)을 해석합니다."""
    accounts = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("\t")
        if len(parts) < 4:
            continue
        account_id, name, user_name, emails = parts[:4]
        accounts.append({
            "id": account_id.strip(),
            "name": name.strip(),
            "user_name": user_name.strip(),
            "emails": [e.strip() for e in emails.split(",") if e.strip()],
        })
    return accounts
