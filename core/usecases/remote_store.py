"""
원격 저장소 유즈케이스

웹메일 아이덴티티(기본 주소와 별칭)를 탐색하고, 인증된 REST 호출로 서명을 읽고 씁니다.
"""

from typing import Awaitable, Callable, List, Optional, TypeVar

from ..domain.entities import (
    AccountBinding,
    CanonicalSignature,
    ImagePolicy,
    RemoteIdentity,
    SignatureState,
    StoreKind,
    StoreWriteResult,
    SyncLedgerEntry,
    content_hash,
)
from ..domain.errors import (
    AuthExpiredError,
    ConflictError,
    NotConfiguredError,
    ValidationBlockedError,
)
from ..domain.ports import LoggerPort, SignatureStorePort, WebmailApiClientPort
from .authentication import AuthenticationUseCase
from .retry import RetryPolicy
from .signature_template import has_embedded_images, strip_embedded_images

T = TypeVar("T")


class RemoteSignatureStore(SignatureStorePort):
    """원격 서명 저장소"""

    store_kind = StoreKind.REMOTE

    def __init__(
        self,
        webmail_api_client: WebmailApiClientPort,
        authentication: AuthenticationUseCase,
        retry_policy: RetryPolicy,
        logger: LoggerPort,
    ):
        self.webmail_api_client = webmail_api_client
        self.authentication = authentication
        self.retry_policy = retry_policy
        self.logger = logger

    async def list_identities(self, account_email: str) -> List[RemoteIdentity]:
        """
        계정의 발신 아이덴티티 목록을 조회합니다.

        Args:
            account_email: 자격 증명 소유 계정 이메일

        Returns:
            아이덴티티 목록 (기본 주소에 별칭 목록 포함)

        Raises:
            NotConfiguredError: 아이덴티티가 없는 경우
        """
        self.logger.info(f"원격 아이덴티티 조회 시작: {account_email}")

        send_as_list = await self._call(
            account_email,
            lambda token: self.webmail_api_client.list_send_as(token),
        )
        if not send_as_list:
            raise NotConfiguredError(
                "원격 계정에 발신 아이덴티티가 없습니다",
                account=account_email,
            )

        emails = [item["sendAsEmail"].lower() for item in send_as_list]
        identities = []
        for item in send_as_list:
            email = item["sendAsEmail"].lower()
            is_primary = bool(item.get("isPrimary", False))
            identities.append(RemoteIdentity(
                email=email,
                display_name=item.get("displayName", ""),
                is_primary=is_primary,
                aliases=[e for e in emails if e != email] if is_primary else [],
            ))

        self.logger.info(f"원격 아이덴티티 조회 완료: {account_email}, {len(identities)}개")
        return identities

    async def read_signature_state(
        self,
        account_email: str,
        identity_email: Optional[str] = None,
    ) -> SignatureState:
        """
        아이덴티티의 현재 원격 서명을 조회합니다.

        Args:
            account_email: 자격 증명 소유 계정 이메일
            identity_email: 아이덴티티 이메일 (없으면 계정 이메일)

        Returns:
            서명 상태 (서명이 비어 있으면 absent)
        """
        target = (identity_email or account_email).lower()
        send_as = await self._call(
            account_email,
            lambda token: self.webmail_api_client.get_send_as(token, target),
        )
        signature = send_as.get("signature") or ""
        if not signature:
            return SignatureState.absent()
        return SignatureState.of(signature)

    async def check_conflict(
        self,
        account_email: str,
        identity_email: Optional[str],
        baseline: Optional[SyncLedgerEntry],
    ) -> SignatureState:
        """
        현재 원격 콘텐츠 해시를 원장 기준 해시와 비교합니다.

        Raises:
            ConflictError: 기준 해시와 다르거나 서명이 비워진 경우
        """
        state = await self.read_signature_state(account_email, identity_email)
        if baseline is None or not baseline.last_hash:
            return state

        # 비어 있는 서명도 기준 해시와 다른 상태
        if not state.present or state.content_hash != baseline.last_hash:
            target = identity_email or account_email
            self.logger.warning(f"원격 서명 충돌 감지: {target}")
            raise ConflictError(
                "마지막 동기화 이후 원격 서명이 변경되었습니다",
                current_hash=state.content_hash,
                baseline_hash=baseline.last_hash,
                account=target,
            )
        return state

    async def write_signature(
        self,
        signature: CanonicalSignature,
        account_email: str,
        identity_email: Optional[str] = None,
        baseline: Optional[SyncLedgerEntry] = None,
        force: bool = False,
        image_policy: ImagePolicy = ImagePolicy.REJECT,
    ) -> StoreWriteResult:
        """
        서명을 원격 아이덴티티에 씁니다.

        내장 이미지는 네트워크 호출 전에 거부하거나 제거합니다.

        Args:
            signature: 정규 서명
            account_email: 자격 증명 소유 계정 이메일
            identity_email: 아이덴티티 이메일 (없으면 계정 이메일)
            baseline: 충돌 비교 기준 원장 항목
            force: 충돌 확인 생략 여부
            image_policy: 내장 이미지 처리 방식

        Returns:
            쓰기 결과

        Raises:
            ValidationBlockedError: 내장 이미지가 있고 정책이 거부인 경우
            ConflictError: 원격 콘텐츠가 기준과 다른 경우
            AuthExpiredError: 재인증이 필요한 경우
            FatalError: 찾을 수 없음/금지됨 또는 재시도 한도 초과
        """
        target = (identity_email or account_email).lower()
        self.logger.info(f"원격 서명 쓰기 시작: {target}")

        html = signature.html
        warnings = []
        if has_embedded_images(html):
            if image_policy == ImagePolicy.REJECT:
                raise ValidationBlockedError(
                    "원격 저장소는 내장 이미지를 보존하지 않습니다",
                    account=target,
                    remediation="이미지를 외부 URL로 바꾸거나 내장 이미지 제거를 허용하세요 (--allow-embedded-images)",
                )
            html, removed = strip_embedded_images(html)
            if has_embedded_images(html):
                raise ValidationBlockedError(
                    "이미지 태그 밖의 내장 이미지(CSS 등)는 제거할 수 없습니다",
                    account=target,
                )
            warnings.append(f"내장 이미지 {removed}개를 제거했습니다")
            self.logger.warning(f"내장 이미지 제거: {target}, {removed}개")

        if not force:
            await self.check_conflict(account_email, identity_email, baseline)

        response = await self._call(
            account_email,
            lambda token: self.webmail_api_client.update_send_as_signature(token, target, html),
        )

        # 서버가 정규화한 콘텐츠를 기준으로 기록
        stored = response.get("signature")
        written_hash = content_hash(stored if stored is not None else html)

        self.logger.info(f"원격 서명 쓰기 완료: {target}")
        return StoreWriteResult(content_hash=written_hash, warnings=warnings)

    async def _call(self, account_email: str, request: Callable[[str], Awaitable[T]]) -> T:
        """재시도 정책 안에서 인증된 요청을 실행합니다."""
        return await self.retry_policy.call(
            lambda: self._authorized(account_email, request),
            account=account_email,
        )

    async def _authorized(self, account_email: str, request: Callable[[str], Awaitable[T]]) -> T:
        """인증 실패 시 정확히 한 번 토큰을 갱신하고 한 번 재시도합니다."""
        token = await self.authentication.get_access_token(account_email)
        try:
            return await request(token)
        except AuthExpiredError:
            self.logger.info(f"인증 실패, 토큰 갱신 후 재시도: {account_email}")
            credential = await self.authentication.force_refresh(account_email, stale_token=token)
            return await request(credential.access_token)

    # SignatureStorePort

    async def read_binding_state(
        self,
        binding: AccountBinding,
        signature: CanonicalSignature,
    ) -> SignatureState:
        return await self.read_signature_state(binding.account_identifier, binding.alias_identifier)

    async def check_binding_conflict(
        self,
        signature: CanonicalSignature,
        binding: AccountBinding,
        baseline: Optional[SyncLedgerEntry],
    ) -> SignatureState:
        return await self.check_conflict(binding.account_identifier, binding.alias_identifier, baseline)

    async def write_binding(
        self,
        signature: CanonicalSignature,
        binding: AccountBinding,
        baseline: Optional[SyncLedgerEntry],
        check_conflict: bool = True,
        image_policy: ImagePolicy = ImagePolicy.REJECT,
    ) -> StoreWriteResult:
        return await self.write_signature(
            signature,
            binding.account_identifier,
            identity_email=binding.alias_identifier,
            baseline=baseline,
            force=not check_conflict,
            image_policy=image_policy,
        )
