"""동기화 코디네이터 테스트"""

import asyncio
from typing import List, Optional

import pytest

from core.domain.entities import (
    AccountBinding,
    CanonicalSignature,
    ImagePolicy,
    SignatureState,
    StoreKind,
    StoreWriteResult,
    SyncEvent,
    SyncLedgerEntry,
    SyncPhase,
    content_hash,
)
from core.domain.errors import ConflictError, ErrorKind, FatalError
from core.domain.ports import SignatureStorePort
from core.usecases.signature_index import ACCOUNT_SIGNATURES_KEY
from core.usecases.sync_coordinator import SyncCoordinator, SyncOptions
from core.usecases.sync_ledger import SyncLedger
from adapters.db.repositories import InMemorySyncLedgerRepositoryAdapter
from adapters.validation.html_policy import HtmlPolicyValidator

from .conftest import ACCOUNT_EMAIL, ALIAS_EMAIL, store_valid_credential, write_ordering_index

NATIVE_ACCOUNT = "ACC-1"
IMAGE_HTML = '<p>Kim</p><img src="data:image/png;base64,iVBORw0KGgo=">'


class ScriptedStore(SignatureStorePort):
    """계정별로 예약된 오류를 발생시키는 메모리 저장소"""

    def __init__(self):
        self.contents = {}
        self.conflicts = set()
        self.failures = {}
        self.writes: List[str] = []
        self.image_policies: List[ImagePolicy] = []

    async def read_binding_state(self, binding, signature) -> SignatureState:
        content = self.contents.get(binding.key)
        return SignatureState.of(content) if content else SignatureState.absent()

    async def check_binding_conflict(self, signature, binding, baseline: Optional[SyncLedgerEntry]):
        if binding.account_identifier in self.conflicts:
            raise ConflictError("changed", account=binding.account_identifier)
        return await self.read_binding_state(binding, signature)

    async def write_binding(self, signature, binding, baseline, check_conflict=True, image_policy=ImagePolicy.REJECT):
        self.image_policies.append(image_policy)
        error = self.failures.get(binding.account_identifier)
        if error is not None:
            raise error
        self.writes.append(binding.account_identifier)
        self.contents[binding.key] = signature.html
        return StoreWriteResult(content_hash=content_hash(signature.html))


def remote_binding(account: str = ACCOUNT_EMAIL, alias: Optional[str] = None) -> AccountBinding:
    return AccountBinding(store_kind=StoreKind.REMOTE, account_identifier=account, alias_identifier=alias)


def native_binding(account: str = NATIVE_ACCOUNT, is_default: bool = True) -> AccountBinding:
    return AccountBinding(store_kind=StoreKind.NATIVE, account_identifier=account, is_default=is_default)


@pytest.fixture
def ledger(logger):
    return SyncLedger(InMemorySyncLedgerRepositoryAdapter(), logger)


@pytest.fixture
def scripted():
    return ScriptedStore()


@pytest.fixture
def coordinator(scripted, ledger, logger):
    return SyncCoordinator(
        stores={StoreKind.NATIVE: scripted, StoreKind.REMOTE: scripted},
        ledger=ledger,
        content_policy=HtmlPolicyValidator(),
        logger=logger,
        max_concurrency=2,
    )


def outcomes_by_account(report):
    return {outcome.account_identifier: outcome for outcome in report.outcomes}


# ---------------------------------------------------------------------------
# 바인딩 독립성
# ---------------------------------------------------------------------------


class TestDispatch:
    """바인딩별 파이프라인"""

    @pytest.mark.asyncio
    async def test_every_binding_gets_an_outcome(self, coordinator, scripted, ledger):
        """한 바인딩의 실패와 충돌이 다른 바인딩에 영향을 주지 않는다"""
        scripted.conflicts.add("conflict@example.com")
        scripted.failures["broken@example.com"] = FatalError("404", status_code=404)
        signature = CanonicalSignature(
            id="S1",
            name="Work",
            html="<p>A</p>",
            bindings=[
                remote_binding("ok@example.com"),
                remote_binding("conflict@example.com"),
                remote_binding("broken@example.com"),
                native_binding(),
            ],
        )

        report = await coordinator.dispatch(signature)
        outcomes = outcomes_by_account(report)

        assert len(report.outcomes) == 4
        assert outcomes["ok@example.com"].phase == SyncPhase.RECORDED
        assert outcomes[NATIVE_ACCOUNT].phase == SyncPhase.RECORDED
        assert outcomes["conflict@example.com"].phase == SyncPhase.CONFLICT_PENDING
        assert outcomes["conflict@example.com"].error_kind == ErrorKind.CONFLICT.value
        assert outcomes["broken@example.com"].phase == SyncPhase.FAILED
        assert outcomes["broken@example.com"].error_kind == ErrorKind.FATAL.value
        assert report.count_by_phase() == {"recorded": 2, "conflict_pending": 1, "failed": 1}

        assert ledger.get(remote_binding("ok@example.com").key).last_hash == content_hash("<p>A</p>")
        assert ledger.get(remote_binding("conflict@example.com").key) is None
        assert ledger.get(remote_binding("broken@example.com").key) is None

    @pytest.mark.asyncio
    async def test_report_bindings_carry_sync_time(self, coordinator):
        signature = CanonicalSignature(id="S1", name="Work", html="<p>A</p>", bindings=[remote_binding()])

        report = await coordinator.dispatch(signature)

        assert report.bindings[0].last_sync_time == report.outcomes[0].synced_at
        assert report.bindings[0].last_sync_time is not None
        assert [entry.key for entry in report.ledger_entries] == [remote_binding().key]

    @pytest.mark.asyncio
    async def test_explicit_bindings_override_signature(self, coordinator, scripted):
        signature = CanonicalSignature(id="S1", name="Work", html="<p>A</p>", bindings=[remote_binding()])

        await coordinator.dispatch(signature, bindings=[remote_binding("other@example.com")])

        assert scripted.writes == ["other@example.com"]

    @pytest.mark.asyncio
    async def test_missing_store_fails_binding(self, scripted, ledger, logger):
        coordinator = SyncCoordinator({StoreKind.REMOTE: scripted}, ledger, None, logger)
        signature = CanonicalSignature(id="S1", name="Work", html="<p>A</p>", bindings=[native_binding()])

        report = await coordinator.dispatch(signature)

        assert report.outcomes[0].phase == SyncPhase.FAILED
        assert scripted.writes == []


class TrackingStore(ScriptedStore):
    """바인딩 키별 동시 쓰기 수와 파이프라인이 받은 기준 해시를 기록하는 저장소"""

    def __init__(self):
        super().__init__()
        self.active = {}
        self.max_active = {}
        self.total_active = 0
        self.max_total_active = 0
        self.baselines_seen: List[Optional[str]] = []
        self.written_html: List[str] = []

    async def check_binding_conflict(self, signature, binding, baseline):
        self.baselines_seen.append(baseline.last_hash if baseline else None)
        return await super().check_binding_conflict(signature, binding, baseline)

    async def write_binding(self, signature, binding, baseline, check_conflict=True, image_policy=ImagePolicy.REJECT):
        key = binding.key
        self.active[key] = self.active.get(key, 0) + 1
        self.max_active[key] = max(self.max_active.get(key, 0), self.active[key])
        self.total_active += 1
        self.max_total_active = max(self.max_total_active, self.total_active)
        try:
            await asyncio.sleep(0.01)
            self.written_html.append(signature.html)
            return await super().write_binding(signature, binding, baseline, check_conflict, image_policy)
        finally:
            self.active[key] -= 1
            self.total_active -= 1


class TestConcurrentDispatch:
    """동시 배포의 바인딩 단위 직렬화"""

    @pytest.mark.asyncio
    async def test_same_binding_is_serialized(self, ledger, logger):
        """같은 바인딩으로 겹친 배포는 순서대로 실행되고 두 번째는 첫 번째 기록을 기준으로 삼는다"""
        store = TrackingStore()
        coordinator = SyncCoordinator(
            {StoreKind.REMOTE: store}, ledger, HtmlPolicyValidator(), logger, max_concurrency=2
        )
        first = CanonicalSignature(id="S1", name="Work", html="<p>A</p>", bindings=[remote_binding()])
        second = CanonicalSignature(id="S1", name="Work", html="<p>B</p>", bindings=[remote_binding()])

        reports = await asyncio.gather(coordinator.dispatch(first), coordinator.dispatch(second))

        key = remote_binding().key
        assert store.max_active[key] == 1
        assert [report.outcomes[0].phase for report in reports] == [SyncPhase.RECORDED, SyncPhase.RECORDED]
        assert len(store.written_html) == 2
        assert store.baselines_seen == [None, content_hash(store.written_html[0])]
        assert ledger.get(key).last_hash == content_hash(store.written_html[1])

    @pytest.mark.asyncio
    async def test_distinct_bindings_run_concurrently(self, ledger, logger):
        store = TrackingStore()
        coordinator = SyncCoordinator(
            {StoreKind.REMOTE: store}, ledger, HtmlPolicyValidator(), logger, max_concurrency=2
        )
        signature = CanonicalSignature(
            id="S1",
            name="Work",
            html="<p>A</p>",
            bindings=[remote_binding("one@example.com"), remote_binding("two@example.com")],
        )

        report = await coordinator.dispatch(signature)

        assert report.count_by_phase() == {"recorded": 2}
        assert store.max_total_active == 2
        assert all(count == 1 for count in store.max_active.values())


# ---------------------------------------------------------------------------
# 검증, 충돌, 취소
# ---------------------------------------------------------------------------


class TestValidationAndConflicts:
    """검증 차단과 충돌 처리"""

    @pytest.mark.asyncio
    async def test_remote_embedded_image_blocked_native_written(self, coordinator, scripted):
        signature = CanonicalSignature(
            id="S1", name="Work", html=IMAGE_HTML, bindings=[remote_binding(), native_binding()]
        )

        report = await coordinator.dispatch(signature)
        outcomes = outcomes_by_account(report)

        assert outcomes[ACCOUNT_EMAIL].phase == SyncPhase.BLOCKED
        assert outcomes[ACCOUNT_EMAIL].error_kind == ErrorKind.VALIDATION_BLOCKED.value
        assert outcomes[NATIVE_ACCOUNT].phase == SyncPhase.RECORDED
        assert scripted.writes == [NATIVE_ACCOUNT]
        # 네이티브 대상에는 경고로만 남음
        assert any("base64" in f.message for f in outcomes[NATIVE_ACCOUNT].advisories)

    @pytest.mark.asyncio
    async def test_allow_embedded_images_passes_strip_policy(self, coordinator, scripted):
        signature = CanonicalSignature(id="S1", name="Work", html=IMAGE_HTML, bindings=[remote_binding()])

        report = await coordinator.dispatch(signature, options=SyncOptions(allow_embedded_images=True))

        assert report.outcomes[0].phase == SyncPhase.RECORDED
        assert scripted.image_policies == [ImagePolicy.STRIP]

    @pytest.mark.asyncio
    async def test_unsafe_html_blocked_everywhere(self, coordinator, scripted):
        signature = CanonicalSignature(
            id="S1", name="Work", html="<p>A</p><script>x()</script>", bindings=[remote_binding(), native_binding()]
        )

        report = await coordinator.dispatch(signature)

        assert {o.phase for o in report.outcomes} == {SyncPhase.BLOCKED}
        assert scripted.writes == []

        relaxed = await coordinator.dispatch(signature, options=SyncOptions(block_on_errors=False))
        assert {o.phase for o in relaxed.outcomes} == {SyncPhase.RECORDED}

    @pytest.mark.asyncio
    async def test_record_conflicts_flags_ledger(self, coordinator, scripted, ledger):
        scripted.conflicts.add(ACCOUNT_EMAIL)
        signature = CanonicalSignature(id="S1", name="Work", html="<p>A</p>", bindings=[remote_binding()])

        report = await coordinator.dispatch(signature, options=SyncOptions(record_conflicts=True))

        entry = ledger.get(remote_binding().key)
        assert entry.has_conflict
        assert entry.last_hash is None
        assert report.ledger_entries[0].has_conflict
        assert report.outcomes[0].remediation

    @pytest.mark.asyncio
    async def test_force_skips_conflict_check(self, coordinator, scripted):
        scripted.conflicts.add(ACCOUNT_EMAIL)
        signature = CanonicalSignature(id="S1", name="Work", html="<p>A</p>", bindings=[remote_binding()])

        report = await coordinator.dispatch(signature, options=SyncOptions(force=True))

        assert report.outcomes[0].phase == SyncPhase.RECORDED

    @pytest.mark.asyncio
    async def test_cancelled_dispatch_skips_bindings(self, coordinator, scripted):
        cancel = asyncio.Event()
        cancel.set()
        signature = CanonicalSignature(
            id="S1", name="Work", html="<p>A</p>", bindings=[remote_binding(), native_binding()]
        )

        report = await coordinator.dispatch(signature, cancel_event=cancel)

        assert {o.phase for o in report.outcomes} == {SyncPhase.SKIPPED}
        assert scripted.writes == []

    @pytest.mark.asyncio
    async def test_events_follow_pipeline(self, coordinator):
        events: List[SyncEvent] = []

        async def on_event(event):
            events.append(event)

        signature = CanonicalSignature(id="S1", name="Work", html="<p>A</p>", bindings=[remote_binding()])
        await coordinator.dispatch(signature, on_event=on_event)

        assert [e.phase for e in events] == [
            SyncPhase.VALIDATING,
            SyncPhase.CHECKING,
            SyncPhase.WRITING,
            SyncPhase.RECORDED,
        ]


# ---------------------------------------------------------------------------
# 실제 저장소와 함께 동작
# ---------------------------------------------------------------------------


class TestWithRealStores:
    """네이티브/원격 저장소를 함께 사용하는 배포"""

    @pytest.fixture
    def real_coordinator(self, native_store, remote_store, ledger, logger):
        return SyncCoordinator(
            stores={StoreKind.NATIVE: native_store, StoreKind.REMOTE: remote_store},
            ledger=ledger,
            content_policy=HtmlPolicyValidator(),
            logger=logger,
        )

    @pytest.mark.asyncio
    async def test_native_and_remote_recorded(
        self, real_coordinator, ledger, vault, webmail_client, native_store, signatures_dir
    ):
        await store_valid_credential(vault)
        write_ordering_index(signatures_dir, {NATIVE_ACCOUNT: {ACCOUNT_SIGNATURES_KEY: ["S0"]}})
        signature = CanonicalSignature(
            id="S1",
            name="Work",
            html="<p>A</p>",
            bindings=[native_binding(), remote_binding(alias=ALIAS_EMAIL)],
        )

        report = await real_coordinator.dispatch(signature)

        assert {o.phase for o in report.outcomes} == {SyncPhase.RECORDED}
        assert webmail_client.send_as[ALIAS_EMAIL]["signature"] == "<p>A</p>"
        state = await native_store.read_signature_state(NATIVE_ACCOUNT)
        assert state.content_hash == content_hash("<p>A</p>")
        assert ledger.get(native_binding().key).last_hash == content_hash("<p>A</p>")

    @pytest.mark.asyncio
    async def test_remote_edit_detected_on_next_dispatch(self, real_coordinator, ledger, vault, webmail_client):
        await store_valid_credential(vault)
        signature = CanonicalSignature(id="S1", name="Work", html="<p>A</p>", bindings=[remote_binding()])
        await real_coordinator.dispatch(signature)

        # 웹메일에서 사용자가 직접 수정
        webmail_client.send_as[ACCOUNT_EMAIL]["signature"] = "<p>edited</p>"
        updated = signature.model_copy(update={"html": "<p>B</p>"})
        report = await real_coordinator.dispatch(updated)

        assert report.outcomes[0].phase == SyncPhase.CONFLICT_PENDING
        assert webmail_client.send_as[ACCOUNT_EMAIL]["signature"] == "<p>edited</p>"
        assert ledger.get(remote_binding().key).last_hash == content_hash("<p>A</p>")

    @pytest.mark.asyncio
    async def test_missing_credential_fails_with_remediation(self, real_coordinator):
        signature = CanonicalSignature(id="S1", name="Work", html="<p>A</p>", bindings=[remote_binding()])

        report = await real_coordinator.dispatch(signature)

        outcome = report.outcomes[0]
        assert outcome.phase == SyncPhase.FAILED
        assert outcome.error_kind == ErrorKind.AUTH_EXPIRED.value
        assert outcome.remediation
