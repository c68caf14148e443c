"""
네이티브 저장소 유즈케이스

네이티브 메일 클라이언트의 계정을 탐색하고, 서명 파일과 두 인덱스
(이름 인덱스, 순서 인덱스)를 읽고 씁니다.
"""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..domain.entities import (
    AccountBinding,
    AutomationStatus,
    CanonicalSignature,
    ImagePolicy,
    ImportedSignature,
    MailAccessStatus,
    NativeAccount,
    SignatureState,
    StoreKind,
    StoreWriteResult,
    SyncLedgerEntry,
    content_hash,
)
from ..domain.errors import (
    AccessDeniedError,
    ConflictError,
    CorruptIndexError,
    NotConfiguredError,
)
from ..domain.ports import (
    AutomationBridgePort,
    LoggerPort,
    NativeMailStoragePort,
    ProcessProbePort,
    SignatureStorePort,
    StructuredCodecPort,
)
from . import signature_index as index
from .signature_template import default_layout, extract_content, parse_layout, plain_text_to_html

SIGNATURE_SUFFIX = ".mailsignature"

AUTOMATION_REMEDIATION = (
    "시스템 설정 > 개인정보 보호 및 보안 > 자동화에서 이 프로그램이 Mail을 제어하도록 허용하세요"
)


def signature_file_name(signature_id: str) -> str:
    return f"{signature_id}{SIGNATURE_SUFFIX}"


class NativeSignatureStore(SignatureStorePort):
    """네이티브 서명 저장소"""

    store_kind = StoreKind.NATIVE

    def __init__(
        self,
        storage: NativeMailStoragePort,
        codec: StructuredCodecPort,
        automation_bridge: AutomationBridgePort,
        process_probe: ProcessProbePort,
        logger: LoggerPort,
        client_name: str = "Mail",
    ):
        self.storage = storage
        self.codec = codec
        self.automation_bridge = automation_bridge
        self.process_probe = process_probe
        self.logger = logger
        self.client_name = client_name
        # 두 인덱스 파일은 모든 계정이 공유하므로 쓰기를 직렬화
        self._index_lock = asyncio.Lock()

    # 계정 탐색

    async def check_access(self) -> MailAccessStatus:
        """메일 데이터 디렉터리 접근 상태를 확인합니다."""
        return await self.storage.check_access()

    async def discover_accounts(self) -> List[NativeAccount]:
        """
        네이티브 메일 계정을 탐색합니다.

        자동화 브리지를 먼저 사용하고, 결과가 없으면 계정 설정 파일을 읽습니다.

        Returns:
            탐색된 계정 목록

        Raises:
            AccessDeniedError: 자동화 또는 파일 시스템 권한이 거부된 경우
            NotConfiguredError: 클라이언트에 계정이 없는 경우
        """
        self.logger.info("네이티브 계정 탐색 시작")

        automation_status = await self.automation_bridge.probe()
        accounts: List[NativeAccount] = []

        if automation_status == AutomationStatus.AVAILABLE:
            try:
                raw_accounts = await self.automation_bridge.list_accounts()
                accounts = self._accounts_from_automation(raw_accounts)
            except AccessDeniedError:
                automation_status = AutomationStatus.DENIED
            self.logger.debug(f"자동화 탐색 결과: {len(accounts)}개")

        if accounts:
            self.logger.info(f"네이티브 계정 탐색 완료 (자동화): {len(accounts)}개")
            return accounts

        self.logger.info(f"설정 파일 기반 탐색으로 전환: 자동화 상태={automation_status.value}")
        accounts = await self._accounts_from_configs()

        if not accounts:
            if automation_status == AutomationStatus.DENIED:
                raise AccessDeniedError(
                    "메일 클라이언트 자동화 권한이 거부되었고 설정 파일에서도 계정을 찾지 못했습니다",
                    scope=AccessDeniedError.AUTOMATION,
                    remediation=AUTOMATION_REMEDIATION,
                )
            raise NotConfiguredError(
                "메일 클라이언트에 설정된 계정이 없습니다",
                remediation=MailAccessStatus.MAIL_NOT_CONFIGURED.user_message,
            )

        self.logger.info(f"네이티브 계정 탐색 완료 (설정 파일): {len(accounts)}개")
        return accounts

    def _accounts_from_automation(self, raw_accounts: List[Dict[str, Any]]) -> List[NativeAccount]:
        accounts = []
        for raw in raw_accounts:
            emails = [e for e in raw.get("emails", []) if e]
            if not emails or not raw.get("id"):
                continue
            name = raw.get("name") or raw.get("user_name") or emails[0]
            accounts.append(NativeAccount(
                id=raw["id"],
                email=emails[0],
                display_name=name,
                is_managed_cloud=_is_managed_cloud(name, emails[0], raw.get("type", "")),
            ))
        return accounts

    async def _accounts_from_configs(self) -> List[NativeAccount]:
        await self._require_access()

        accounts = []
        for account_id, data in await self.storage.list_account_configs():
            try:
                document = self.codec.decode(data)
            except CorruptIndexError:
                self.logger.warning(f"계정 설정 파일을 읽을 수 없음: {account_id}")
                continue
            account = self._account_from_config(account_id, document)
            if account:
                accounts.append(account)
        return accounts

    def _account_from_config(self, account_id: str, document: Any) -> Optional[NativeAccount]:
        if not isinstance(document, dict):
            return None

        email = ""
        addresses = document.get("EmailAddresses")
        if isinstance(addresses, list) and addresses:
            email = addresses[0]
        elif isinstance(document.get("EmailAddress"), str):
            email = document["EmailAddress"]
        if not email:
            return None

        name = document.get("AccountName") or document.get("FullUserName") or email
        return NativeAccount(
            id=account_id,
            email=email,
            display_name=name,
            is_managed_cloud=_is_managed_cloud(name, email, document.get("AccountType", "")),
        )

    # 서명 상태 조회

    async def read_signature_state(
        self,
        account_id: str,
        signature_id: Optional[str] = None,
    ) -> SignatureState:
        """
        계정에 할당된 서명의 현재 상태를 조회합니다.

        Args:
            account_id: 계정 ID
            signature_id: 서명 ID (없으면 계정의 기본 서명)

        Returns:
            서명 상태 (없으면 absent)
        """
        await self._require_access()

        if signature_id is None:
            ordering_index = await self._load_index(index.ORDERING_INDEX_FILE, index.ensure_ordering_index)
            ordering = index.account_ordering(ordering_index, account_id)
            if not ordering:
                return SignatureState.absent()
            signature_id = ordering[0]

        name = signature_file_name(signature_id)
        data = await self.storage.read_file(name)
        if data is None:
            return SignatureState.absent()

        text = data.decode("utf-8", errors="replace")
        modified_at = await self.storage.modified_at(name)
        return SignatureState.of(extract_content(text), modified_at)

    async def check_conflict(
        self,
        signature: CanonicalSignature,
        account_id: str,
        baseline: Optional[SyncLedgerEntry],
    ) -> SignatureState:
        """
        마지막 동기화 이후 저장소 콘텐츠가 바뀌었는지 확인합니다.

        Raises:
            ConflictError: 기준 해시(또는 기준 시간)와 현재 상태가 다른 경우
        """
        state = await self.read_signature_state(account_id, signature.id)
        if baseline is None:
            return state

        if baseline.last_hash and not state.present:
            # 기준은 계정 단위이므로 다른 서명으로 바꾸는 경우 계정에 할당된 서명과 비교
            state = await self.read_signature_state(account_id)

        if baseline.last_hash:
            # 기록된 서명이 사라진 경우도 변경으로 봄
            changed = not state.present or state.content_hash != baseline.last_hash
        elif state.present and baseline.last_sync_time and state.modified_at:
            changed = state.modified_at > baseline.last_sync_time
        else:
            changed = False

        if changed:
            self.logger.warning(f"네이티브 서명 충돌 감지: {account_id}/{signature.id}")
            raise ConflictError(
                "마지막 동기화 이후 네이티브 서명이 변경되었습니다",
                current_hash=state.content_hash,
                baseline_hash=baseline.last_hash,
                account=account_id,
            )
        return state

    # 서명 쓰기

    async def write_signature(
        self,
        signature: CanonicalSignature,
        account_id: str,
        make_default: bool = False,
        baseline: Optional[SyncLedgerEntry] = None,
        force: bool = False,
    ) -> StoreWriteResult:
        """
        서명을 네이티브 저장소에 씁니다.

        Args:
            signature: 정규 서명
            account_id: 계정 ID
            make_default: 계정의 기본 서명으로 지정할지 여부
            baseline: 충돌 비교 기준 원장 항목
            force: 충돌 확인 생략 여부

        Returns:
            쓰기 결과 (콘텐츠 해시, 재시작 필요 여부)

        Raises:
            AccessDeniedError: 파일 시스템 권한이 거부된 경우
            NotConfiguredError: 메일 데이터 디렉터리가 없는 경우
            ConflictError: 저장소 콘텐츠가 기준과 다른 경우
            FatalError: 파일 쓰기/교체에 실패한 경우
        """
        self.logger.info(f"네이티브 서명 쓰기 시작: {account_id}/{signature.id}")
        await self._require_access()

        async with self._index_lock:
            if not force:
                await self.check_conflict(signature, account_id, baseline)

            name_index, name_raw = await self._load_index_raw(
                index.NAME_INDEX_FILE, index.ensure_name_index
            )
            ordering_index, ordering_raw = await self._load_index_raw(
                index.ORDERING_INDEX_FILE, index.ensure_ordering_index
            )

            file_name = signature_file_name(signature.id)
            layout = await self._find_template(file_name)
            document_text = layout.compose(signature.html)
            await self.storage.atomic_write(file_name, document_text.encode("utf-8"))

            name_index = index.upsert_name(name_index, signature.id, signature.name)
            await self.storage.atomic_write(
                index.NAME_INDEX_FILE,
                self.codec.encode(name_index, like=name_raw),
            )

            ordering_index = index.place_signature(ordering_index, account_id, signature.id, make_default)
            await self.storage.atomic_write(
                index.ORDERING_INDEX_FILE,
                self.codec.encode(ordering_index, like=ordering_raw),
            )

        written_hash = content_hash(extract_content(document_text))
        restart_required = await self.process_probe.is_running(self.client_name)

        warnings = []
        if restart_required:
            warnings.append(f"{self.client_name}이(가) 실행 중입니다. 변경 사항은 재시작 후 적용됩니다")

        self.logger.info(f"네이티브 서명 쓰기 완료: {account_id}/{signature.id}")
        return StoreWriteResult(
            content_hash=written_hash,
            restart_required=restart_required,
            warnings=warnings,
        )

    async def _find_template(self, file_name: str):
        """기존 파일을 템플릿으로 찾고, 없으면 기본 래퍼를 사용합니다."""
        data = await self.storage.read_file(file_name)
        if data is not None:
            layout = parse_layout(data.decode("utf-8", errors="replace"))
            if layout is not None:
                return layout

        for candidate in sorted(await self.storage.list_signature_files()):
            if not candidate.endswith(SIGNATURE_SUFFIX) or candidate == file_name:
                continue
            candidate_data = await self.storage.read_file(candidate)
            if candidate_data is None:
                continue
            layout = parse_layout(candidate_data.decode("utf-8", errors="replace"))
            if layout is not None:
                self.logger.debug(f"템플릿으로 사용: {candidate}")
                return layout

        return default_layout()

    # 가져오기 / 삭제

    async def import_signatures(self) -> List[ImportedSignature]:
        """
        네이티브 저장소의 기존 서명을 가져옵니다.

        Returns:
            가져온 서명 목록
        """
        self.logger.info("네이티브 서명 가져오기 시작")
        await self._require_access()

        name_index = await self._load_index(index.NAME_INDEX_FILE, index.ensure_name_index)
        ordering_index = await self._load_index(index.ORDERING_INDEX_FILE, index.ensure_ordering_index)
        names = index.signature_names(name_index)

        imported = []
        for file_name in sorted(await self.storage.list_signature_files()):
            if not file_name.endswith(SIGNATURE_SUFFIX):
                continue
            signature_id = file_name[: -len(SIGNATURE_SUFFIX)]
            data = await self.storage.read_file(file_name)
            if data is None:
                continue

            parsed = self._parse_signature_file(data)
            if parsed is None:
                self.logger.warning(f"서명 파일을 해석할 수 없음: {file_name}")
                continue
            embedded_name, text = parsed

            imported.append(ImportedSignature(
                id=signature_id,
                name=names.get(signature_id) or embedded_name or signature_id,
                html=plain_text_to_html(text),
                account_ids=index.accounts_for_signature(ordering_index, signature_id),
            ))

        self.logger.info(f"네이티브 서명 가져오기 완료: {len(imported)}개")
        return imported

    def _parse_signature_file(self, data: bytes) -> Optional[Tuple[Optional[str], str]]:
        """서명 파일에서 (내장 이름, 본문)을 추출합니다."""
        if data.lstrip().startswith((b"<?xml", b"bplist")):
            try:
                document = self.codec.decode(data)
            except CorruptIndexError:
                return None
            if isinstance(document, dict) and isinstance(document.get("SignatureText"), str):
                return document.get("SignatureName"), document["SignatureText"]
            return None

        text = data.decode("utf-8", errors="replace")
        return None, extract_content(text).strip()

    async def delete_signature(self, signature_id: str) -> bool:
        """
        서명 파일과 인덱스 항목을 삭제합니다.

        Returns:
            삭제된 항목이 있었는지 여부
        """
        self.logger.info(f"네이티브 서명 삭제: {signature_id}")
        await self._require_access()

        async with self._index_lock:
            name_index, name_raw = await self._load_index_raw(
                index.NAME_INDEX_FILE, index.ensure_name_index
            )
            ordering_index, ordering_raw = await self._load_index_raw(
                index.ORDERING_INDEX_FILE, index.ensure_ordering_index
            )

            was_named = signature_id in index.signature_names(name_index)
            was_ordered = bool(index.accounts_for_signature(ordering_index, signature_id))

            if was_named:
                await self.storage.atomic_write(
                    index.NAME_INDEX_FILE,
                    self.codec.encode(index.remove_name(name_index, signature_id), like=name_raw),
                )
            if was_ordered:
                await self.storage.atomic_write(
                    index.ORDERING_INDEX_FILE,
                    self.codec.encode(
                        index.remove_signature_everywhere(ordering_index, signature_id),
                        like=ordering_raw,
                    ),
                )
            removed_file = await self.storage.remove(signature_file_name(signature_id))

        return removed_file or was_named or was_ordered

    # SignatureStorePort

    async def read_binding_state(
        self,
        binding: AccountBinding,
        signature: CanonicalSignature,
    ) -> SignatureState:
        return await self.read_signature_state(binding.account_identifier, signature.id)

    async def check_binding_conflict(
        self,
        signature: CanonicalSignature,
        binding: AccountBinding,
        baseline: Optional[SyncLedgerEntry],
    ) -> SignatureState:
        return await self.check_conflict(signature, binding.account_identifier, baseline)

    async def write_binding(
        self,
        signature: CanonicalSignature,
        binding: AccountBinding,
        baseline: Optional[SyncLedgerEntry],
        check_conflict: bool = True,
        image_policy: ImagePolicy = ImagePolicy.REJECT,
    ) -> StoreWriteResult:
        # 네이티브 저장소는 내장 이미지를 그대로 보존하므로 image_policy를 사용하지 않음
        return await self.write_signature(
            signature,
            binding.account_identifier,
            make_default=binding.is_default,
            baseline=baseline,
            force=not check_conflict,
        )

    # 내부 헬퍼

    async def _require_access(self) -> None:
        status = await self.storage.check_access()
        if status == MailAccessStatus.PERMISSION_DENIED:
            raise AccessDeniedError(
                "메일 데이터 디렉터리 접근 권한이 없습니다",
                scope=AccessDeniedError.FILESYSTEM,
                remediation=status.user_message,
            )
        if status == MailAccessStatus.MAIL_NOT_CONFIGURED:
            raise NotConfiguredError(
                "메일 데이터 디렉터리를 찾을 수 없습니다",
                remediation=status.user_message,
            )

    async def _load_index(self, name: str, ensure: Callable[[Optional[Any]], Any]) -> Any:
        document, _ = await self._load_index_raw(name, ensure)
        return document

    async def _load_index_raw(
        self,
        name: str,
        ensure: Callable[[Optional[Any]], Any],
    ) -> Tuple[Any, Optional[bytes]]:
        """
        인덱스 문서를 읽습니다.

        파일이 없으면 빈 문서로 초기화하고, 있지만 읽을 수 없으면 CorruptIndexError를 발생시킵니다.

        Returns:
            (문서, 원본 바이트 또는 None)
        """
        raw = await self.storage.read_file(name)
        if raw is None:
            return ensure(None), None
        try:
            document = self.codec.decode(raw)
        except CorruptIndexError as e:
            raise CorruptIndexError(f"인덱스 파일을 읽을 수 없습니다: {name}", path=name) from e
        return ensure(document), raw


def _is_managed_cloud(name: str, email: str, account_type: str) -> bool:
    """iCloud 계정 여부"""
    return (
        "icloud" in (account_type or "").lower()
        or "icloud" in (name or "").lower()
        or "icloud.com" in (email or "").lower()
    )
