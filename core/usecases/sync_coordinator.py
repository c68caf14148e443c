"""
동기화 코디네이터 유즈케이스

하나의 정규 서명을 여러 바인딩으로 배포합니다.
바인딩마다 검증 -> 충돌 확인 -> 쓰기 -> 기록 파이프라인을 독립적으로 실행하며,
한 바인딩의 실패나 충돌은 다른 바인딩에 영향을 주지 않습니다.
"""

import asyncio
import inspect
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from ..domain.entities import (
    AccountBinding,
    CanonicalSignature,
    ImagePolicy,
    StoreKind,
    SyncEvent,
    SyncLedgerEntry,
    SyncOutcome,
    SyncPhase,
    ValidationCategory,
    ValidationFinding,
    ValidationSeverity,
)
from ..domain.errors import ConflictError, ErrorKind, SyncError
from ..domain.ports import ContentPolicyPort, LoggerPort, SignatureStorePort
from .signature_template import has_embedded_images
from .sync_ledger import SyncLedger

EventCallback = Callable[[SyncEvent], Any]

ALLOWED_TRANSITIONS = {
    SyncPhase.IDLE: {SyncPhase.VALIDATING, SyncPhase.SKIPPED, SyncPhase.FAILED},
    SyncPhase.VALIDATING: {SyncPhase.BLOCKED, SyncPhase.CHECKING, SyncPhase.FAILED},
    SyncPhase.CHECKING: {SyncPhase.WRITING, SyncPhase.CONFLICT_PENDING, SyncPhase.FAILED},
    SyncPhase.WRITING: {SyncPhase.RECORDED, SyncPhase.CONFLICT_PENDING, SyncPhase.FAILED},
}


class SyncOptions(BaseModel):
    """배포 옵션"""

    force: bool = Field(default=False, description="충돌 확인 생략 (덮어쓰기)")
    allow_embedded_images: bool = Field(default=False, description="원격 대상에서 내장 이미지 제거 허용")
    record_conflicts: bool = Field(default=False, description="충돌을 원장에 표시")
    block_on_errors: bool = Field(default=True, description="오류 심각도 검증 결과로 차단")


class DispatchReport(BaseModel):
    """배포 결과"""

    outcomes: List[SyncOutcome] = Field(default_factory=list, description="바인딩별 결과")
    bindings: List[AccountBinding] = Field(default_factory=list, description="동기화 시간이 갱신된 바인딩")
    ledger_entries: List[SyncLedgerEntry] = Field(default_factory=list, description="기록된 원장 항목")

    def count_by_phase(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for outcome in self.outcomes:
            counts[outcome.phase.value] = counts.get(outcome.phase.value, 0) + 1
        return counts


class _PhaseTracker:
    """바인딩 단위 상태 전이 추적"""

    def __init__(self, binding_key: str, on_event: Optional[EventCallback]):
        self.binding_key = binding_key
        self.on_event = on_event
        self.phase = SyncPhase.IDLE

    async def move(self, phase: SyncPhase, detail: Optional[str] = None) -> None:
        allowed = ALLOWED_TRANSITIONS.get(self.phase, set())
        if phase not in allowed:
            raise RuntimeError(f"허용되지 않는 상태 전이: {self.phase.value} -> {phase.value}")
        self.phase = phase
        if self.on_event is None:
            return
        result = self.on_event(SyncEvent(binding_key=self.binding_key, phase=phase, detail=detail))
        if inspect.isawaitable(result):
            await result


class SyncCoordinator:
    """동기화 코디네이터"""

    def __init__(
        self,
        stores: Dict[StoreKind, SignatureStorePort],
        ledger: SyncLedger,
        content_policy: Optional[ContentPolicyPort],
        logger: LoggerPort,
        max_concurrency: int = 4,
    ):
        self.stores = stores
        self.ledger = ledger
        self.content_policy = content_policy
        self.logger = logger
        self.max_concurrency = max(1, max_concurrency)
        self._binding_locks: Dict[str, asyncio.Lock] = {}

    async def dispatch(
        self,
        signature: CanonicalSignature,
        bindings: Optional[List[AccountBinding]] = None,
        options: Optional[SyncOptions] = None,
        cancel_event: Optional[asyncio.Event] = None,
        on_event: Optional[EventCallback] = None,
    ) -> DispatchReport:
        """
        서명을 바인딩들로 배포합니다.

        Args:
            signature: 정규 서명
            bindings: 대상 바인딩 (없으면 서명의 바인딩 전체)
            options: 배포 옵션
            cancel_event: 설정되면 아직 시작하지 않은 바인딩을 건너뜀
            on_event: 상태 전이마다 호출되는 콜백

        Returns:
            바인딩별 결과를 담은 배포 결과
        """
        options = options or SyncOptions()
        targets = list(signature.bindings if bindings is None else bindings)
        self.logger.info(f"서명 배포 시작: {signature.id}, 대상 {len(targets)}개")

        await self.ledger.ensure_loaded()

        semaphore = asyncio.Semaphore(self.max_concurrency)
        outcomes = await asyncio.gather(*[
            self._run_unit(signature, binding, options, semaphore, cancel_event, on_event)
            for binding in targets
        ])

        report = DispatchReport(outcomes=list(outcomes))
        for binding, outcome in zip(targets, outcomes):
            if outcome.succeeded:
                report.bindings.append(binding.model_copy(update={"last_sync_time": outcome.synced_at}))
            else:
                report.bindings.append(binding.model_copy())
            entry = self.ledger.get(binding.key)
            if entry is not None and (outcome.succeeded or entry.has_conflict):
                report.ledger_entries.append(entry)

        self.logger.info(f"서명 배포 완료: {signature.id}, {report.count_by_phase()}")
        return report

    async def _run_unit(
        self,
        signature: CanonicalSignature,
        binding: AccountBinding,
        options: SyncOptions,
        semaphore: asyncio.Semaphore,
        cancel_event: Optional[asyncio.Event],
        on_event: Optional[EventCallback],
    ) -> SyncOutcome:
        async with semaphore:
            async with self._lock_for(binding.key):
                tracker = _PhaseTracker(binding.key, on_event)
                if cancel_event is not None and cancel_event.is_set():
                    await tracker.move(SyncPhase.SKIPPED, "배포가 취소되었습니다")
                    return self._outcome(binding, SyncPhase.SKIPPED, message="배포가 취소되었습니다")
                try:
                    return await self._pipeline(signature, binding, options, tracker)
                except Exception as e:
                    self.logger.error(f"바인딩 동기화 중 예기치 않은 오류: {binding.key}, {str(e)}")
                    if not tracker.phase.is_terminal:
                        tracker.phase = SyncPhase.FAILED
                    return self._outcome(
                        binding,
                        SyncPhase.FAILED,
                        error_kind=ErrorKind.FATAL.value,
                        message=str(e),
                    )

    async def _pipeline(
        self,
        signature: CanonicalSignature,
        binding: AccountBinding,
        options: SyncOptions,
        tracker: _PhaseTracker,
    ) -> SyncOutcome:
        store = self.stores.get(binding.store_kind)
        if store is None:
            await tracker.move(SyncPhase.FAILED)
            return self._outcome(
                binding,
                SyncPhase.FAILED,
                error_kind=ErrorKind.FATAL.value,
                message=f"등록되지 않은 저장소 종류입니다: {binding.store_kind.value}",
            )

        # 검증
        await tracker.move(SyncPhase.VALIDATING)
        findings = self._validate(signature, binding, options)
        hard = [f for f in findings if f.is_hard]
        advisories = [f for f in findings if not f.is_hard]
        if hard and (options.block_on_errors or self._blocks_images(signature, binding, options)):
            detail = "; ".join(f.message for f in hard)
            await tracker.move(SyncPhase.BLOCKED, detail)
            self.logger.warning(f"검증 차단: {binding.key}, {detail}")
            return self._outcome(
                binding,
                SyncPhase.BLOCKED,
                error_kind=ErrorKind.VALIDATION_BLOCKED.value,
                message=detail,
                advisories=findings,
            )

        # 충돌 확인
        await tracker.move(SyncPhase.CHECKING)
        baseline = self.ledger.get(binding.key)
        try:
            if not options.force:
                await store.check_binding_conflict(signature, binding, baseline)
        except ConflictError as e:
            return await self._conflict(binding, options, tracker, e, advisories)
        except SyncError as e:
            return await self._failed(binding, tracker, e, advisories)

        # 쓰기
        await tracker.move(SyncPhase.WRITING)
        image_policy = ImagePolicy.STRIP if options.allow_embedded_images else ImagePolicy.REJECT
        try:
            result = await store.write_binding(
                signature,
                binding,
                baseline,
                check_conflict=False,
                image_policy=image_policy,
            )
        except ConflictError as e:
            return await self._conflict(binding, options, tracker, e, advisories)
        except SyncError as e:
            return await self._failed(binding, tracker, e, advisories)

        # 기록
        await self.ledger.record_success(binding, result.content_hash, result.written_at)
        await tracker.move(SyncPhase.RECORDED)
        self.logger.info(f"바인딩 동기화 완료: {binding.key}")
        return self._outcome(
            binding,
            SyncPhase.RECORDED,
            content_hash=result.content_hash,
            advisories=advisories,
            warnings=result.warnings,
            restart_required=result.restart_required,
            synced_at=result.written_at,
        )

    def _validate(
        self,
        signature: CanonicalSignature,
        binding: AccountBinding,
        options: SyncOptions,
    ) -> List[ValidationFinding]:
        findings = list(self.content_policy.validate(signature.html)) if self.content_policy else []
        if not self._blocks_images(signature, binding, options):
            return findings

        # 원격 대상의 내장 이미지는 차단 대상으로 격상
        escalated = [
            f for f in findings
            if not (f.category == ValidationCategory.COMPATIBILITY and "base64" in f.message.lower())
        ]
        escalated.append(ValidationFinding(
            message="원격 저장소는 base64 내장 이미지를 보존하지 않습니다",
            severity=ValidationSeverity.ERROR,
            category=ValidationCategory.COMPATIBILITY,
        ))
        return escalated

    def _blocks_images(
        self,
        signature: CanonicalSignature,
        binding: AccountBinding,
        options: SyncOptions,
    ) -> bool:
        return (
            binding.store_kind == StoreKind.REMOTE
            and not options.allow_embedded_images
            and has_embedded_images(signature.html)
        )

    async def _conflict(
        self,
        binding: AccountBinding,
        options: SyncOptions,
        tracker: _PhaseTracker,
        error: ConflictError,
        advisories: List[ValidationFinding],
    ) -> SyncOutcome:
        await tracker.move(SyncPhase.CONFLICT_PENDING, error.message)
        if options.record_conflicts:
            await self.ledger.flag_conflict(binding, error.message)
        return self._outcome(
            binding,
            SyncPhase.CONFLICT_PENDING,
            error_kind=error.kind.value,
            message=str(error),
            remediation=error.remediation,
            advisories=advisories,
        )

    async def _failed(
        self,
        binding: AccountBinding,
        tracker: _PhaseTracker,
        error: SyncError,
        advisories: List[ValidationFinding],
    ) -> SyncOutcome:
        await tracker.move(SyncPhase.FAILED, error.message)
        self.logger.error(f"바인딩 동기화 실패: {binding.key}, {str(error)}")
        return self._outcome(
            binding,
            SyncPhase.FAILED,
            error_kind=error.kind.value,
            message=str(error),
            remediation=error.remediation,
            advisories=advisories,
        )

    def _outcome(self, binding: AccountBinding, phase: SyncPhase, **kwargs) -> SyncOutcome:
        return SyncOutcome(
            binding_key=binding.key,
            store_kind=binding.store_kind,
            account_identifier=binding.account_identifier,
            phase=phase,
            **kwargs,
        )

    def _lock_for(self, key: str) -> asyncio.Lock:
        return self._binding_locks.setdefault(key, asyncio.Lock())
