"""
메일 데이터 디렉터리 어댑터

네이티브 메일 클라이언트의 버전별 데이터 디렉터리(~/Library/Mail/V<n>/MailData)를 다룹니다.
파일 쓰기는 같은 디렉터리의 임시 파일에 쓴 뒤 원자적으로 교체하며,
세션에서 처음 교체하는 파일은 <파일>.backup으로 백업합니다.
"""

import asyncio
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Set, Tuple

from core.domain.entities import MailAccessStatus
from core.domain.errors import AccessDeniedError, FatalError, NotConfiguredError
from core.domain.ports import LoggerPort, NativeMailStoragePort

FALLBACK_VERSION = 10
BACKUP_SUFFIX = ".backup"


def _access_denied(path: Path) -> AccessDeniedError:
    return AccessDeniedError(
        f"파일 접근 권한이 없습니다: {path}",
        scope=AccessDeniedError.FILESYSTEM,
        remediation=MailAccessStatus.PERMISSION_DENIED.user_message,
    )


class MailDataDirectoryAdapter(NativeMailStoragePort):
    """메일 데이터 디렉터리 어댑터"""

    def __init__(
        self,
        root: Path,
        logger: LoggerPort,
        version_range: Tuple[int, int] = (8, 12),
    ):
        self.root = Path(root).expanduser()
        self.logger = logger
        self.version_range = version_range
        self._backed_up: Set[Path] = set()

    @property
    def mail_data_path(self) -> Path:
        """존재하는 가장 최신 버전의 MailData 디렉터리 (없으면 V10)"""
        low, high = self.version_range
        for version in range(high, low - 1, -1):
            candidate = self.root / f"V{version}" / "MailData"
            if candidate.exists():
                return candidate
        return self.root / f"V{FALLBACK_VERSION}" / "MailData"

    @property
    def signatures_path(self) -> Path:
        return self.mail_data_path / "Signatures"

    @property
    def accounts_path(self) -> Path:
        return self.mail_data_path / "Accounts"

    async def check_access(self) -> MailAccessStatus:
        """실제 디렉터리 목록 조회로 접근 상태를 확인합니다."""
        return await asyncio.to_thread(self._check_access)

    def _check_access(self) -> MailAccessStatus:
        mail_data = self.mail_data_path
        if not mail_data.exists():
            self.logger.debug(f"메일 데이터 디렉터리 없음: {mail_data}")
            return MailAccessStatus.MAIL_NOT_CONFIGURED

        # 권한 비트가 아닌 실제 읽기 시도로만 판단
        try:
            contents = os.listdir(mail_data)
        except OSError as e:
            self.logger.warning(f"메일 데이터 디렉터리 접근 거부: {mail_data}, {str(e)}")
            return MailAccessStatus.PERMISSION_DENIED

        if "Accounts" not in contents and "Signatures" not in contents:
            return MailAccessStatus.MAIL_NOT_CONFIGURED
        return MailAccessStatus.GRANTED

    async def list_account_configs(self) -> List[Tuple[str, bytes]]:
        return await asyncio.to_thread(self._list_account_configs)

    def _list_account_configs(self) -> List[Tuple[str, bytes]]:
        accounts_path = self.accounts_path
        if not accounts_path.exists():
            return []

        configs = []
        try:
            for account_dir in sorted(accounts_path.iterdir()):
                info = account_dir / "Info.plist"
                if account_dir.is_dir() and info.exists():
                    configs.append((account_dir.name, info.read_bytes()))
        except PermissionError as e:
            raise _access_denied(accounts_path) from e
        return configs

    async def list_signature_files(self) -> List[str]:
        return await asyncio.to_thread(self._list_signature_files)

    def _list_signature_files(self) -> List[str]:
        signatures_path = self.signatures_path
        if not signatures_path.exists():
            return []
        try:
            return [p.name for p in signatures_path.iterdir() if p.is_file()]
        except PermissionError as e:
            raise _access_denied(signatures_path) from e

    async def read_file(self, name: str) -> Optional[bytes]:
        return await asyncio.to_thread(self._read_file, name)

    def _read_file(self, name: str) -> Optional[bytes]:
        path = self._path_for(name)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except PermissionError as e:
            raise _access_denied(path) from e
        except OSError as e:
            raise FatalError(f"파일을 읽을 수 없습니다: {path}, {e}") from e

    async def modified_at(self, name: str) -> Optional[datetime]:
        return await asyncio.to_thread(self._modified_at, name)

    def _modified_at(self, name: str) -> Optional[datetime]:
        path = self._path_for(name)
        try:
            return datetime.fromtimestamp(path.stat().st_mtime, timezone.utc)
        except FileNotFoundError:
            return None
        except PermissionError as e:
            raise _access_denied(path) from e

    async def atomic_write(self, name: str, data: bytes) -> None:
        await asyncio.to_thread(self._atomic_write, name, data)

    def _atomic_write(self, name: str, data: bytes) -> None:
        if not self.mail_data_path.exists():
            raise NotConfiguredError(
                "메일 데이터 디렉터리를 찾을 수 없습니다",
                remediation=MailAccessStatus.MAIL_NOT_CONFIGURED.user_message,
            )

        target = self._path_for(name)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)

            if target.exists() and target not in self._backed_up:
                shutil.copy2(target, target.with_name(target.name + BACKUP_SUFFIX))
                self._backed_up.add(target)
                self.logger.debug(f"백업 생성: {target.name}{BACKUP_SUFFIX}")

            fd, temp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(temp_name, target)
            except BaseException:
                if os.path.exists(temp_name):
                    os.unlink(temp_name)
                raise
        except PermissionError as e:
            raise _access_denied(target) from e
        except OSError as e:
            self.logger.error(f"파일 쓰기 실패: {target}, {str(e)}")
            raise FatalError(f"파일을 쓸 수 없습니다: {target}, {e}") from e

        self.logger.debug(f"파일 쓰기 완료: {target.name}")

    async def remove(self, name: str) -> bool:
        return await asyncio.to_thread(self._remove, name)

    def _remove(self, name: str) -> bool:
        path = self._path_for(name)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except PermissionError as e:
            raise _access_denied(path) from e

    def _path_for(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ValueError(f"잘못된 파일 이름입니다: {name}")
        return self.signatures_path / name
