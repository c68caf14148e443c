"""네이티브 서명 저장소 테스트"""

import plistlib
from datetime import timedelta

import pytest

from core.domain.entities import (
    AccountBinding,
    AutomationStatus,
    CanonicalSignature,
    StoreKind,
    SyncLedgerEntry,
    content_hash,
    now_utc,
)
from core.domain.errors import AccessDeniedError, ConflictError, CorruptIndexError, NotConfiguredError
from core.usecases.native_store import NativeSignatureStore
from core.usecases.signature_index import ACCOUNT_SIGNATURES_KEY
from core.usecases.signature_template import DEFAULT_BODY_OPEN
from adapters.native.mail_directory import MailDataDirectoryAdapter
from adapters.native.plist_codec import PlistCodecAdapter

from .conftest import write_name_index, write_ordering_index

ACCOUNT_ID = "ACC-1"

TEMPLATE_FILE = (
    "Content-Transfer-Encoding: 7bit\n"
    "Content-Type: text/html;\n"
    "\tcharset=utf-8\n"
    "Message-Id: <template@example.com>\n"
    "\n"
    '<body class="kept"><p>S0</p></body>'
)


def make_signature(signature_id: str = "S1", html: str = "<p>A</p>") -> CanonicalSignature:
    return CanonicalSignature(id=signature_id, name="Work", html=html)


def baseline_for(hash_value=None, last_sync_time=None) -> SyncLedgerEntry:
    binding = AccountBinding(store_kind=StoreKind.NATIVE, account_identifier=ACCOUNT_ID)
    entry = SyncLedgerEntry.for_binding(binding)
    entry.last_hash = hash_value
    entry.last_sync_time = last_sync_time
    return entry


def read_plist(path):
    return plistlib.loads(path.read_bytes())


# ---------------------------------------------------------------------------
# 쓰기
# ---------------------------------------------------------------------------


class TestWriteSignature:
    """서명 쓰기와 인덱스 갱신"""

    @pytest.mark.asyncio
    async def test_default_signature_goes_first(self, native_store, signatures_dir):
        """기본 서명으로 쓰면 순서 목록 맨 앞에 온다"""
        write_ordering_index(signatures_dir, {ACCOUNT_ID: {ACCOUNT_SIGNATURES_KEY: ["S0"]}})
        write_name_index(signatures_dir, [{"SignatureUniqueId": "S0", "SignatureName": "Old"}])

        result = await native_store.write_signature(make_signature(), ACCOUNT_ID, make_default=True)

        ordering = read_plist(signatures_dir / "AccountsMap.plist")
        assert ordering[ACCOUNT_ID][ACCOUNT_SIGNATURES_KEY] == ["S1", "S0"]

        names = read_plist(signatures_dir / "AllSignatures.plist")
        assert {item["SignatureUniqueId"] for item in names} == {"S0", "S1"}

        assert result.content_hash == content_hash("<p>A</p>")
        assert not result.restart_required

    @pytest.mark.asyncio
    async def test_written_hash_matches_read_state(self, native_store):
        """쓰기 결과 해시와 직후 읽은 해시가 같다"""
        signature = make_signature(html="<table><tr><td>Kim</td></tr></table>")
        result = await native_store.write_signature(signature, ACCOUNT_ID)
        state = await native_store.read_signature_state(ACCOUNT_ID, signature.id)

        assert state.present
        assert state.content_hash == result.content_hash == signature.content_hash

    @pytest.mark.asyncio
    async def test_new_file_uses_default_wrapper(self, native_store, signatures_dir):
        await native_store.write_signature(make_signature(), ACCOUNT_ID)
        text = (signatures_dir / "S1.mailsignature").read_text(encoding="utf-8")
        assert text.startswith("Content-Transfer-Encoding: 7bit\n")
        assert f"{DEFAULT_BODY_OPEN}<p>A</p></body>" in text

    @pytest.mark.asyncio
    async def test_existing_file_wrapper_is_preserved(self, native_store, signatures_dir):
        """기존 파일의 헤더와 body 태그를 보존한다"""
        (signatures_dir / "S1.mailsignature").write_text(TEMPLATE_FILE.replace("S0", "old"), encoding="utf-8")

        await native_store.write_signature(make_signature(), ACCOUNT_ID, force=True)

        text = (signatures_dir / "S1.mailsignature").read_text(encoding="utf-8")
        assert "Message-Id: <template@example.com>" in text
        assert '<body class="kept"><p>A</p></body>' in text

    @pytest.mark.asyncio
    async def test_sibling_file_used_as_template(self, native_store, signatures_dir):
        (signatures_dir / "S0.mailsignature").write_text(TEMPLATE_FILE, encoding="utf-8")

        await native_store.write_signature(make_signature(), ACCOUNT_ID)

        text = (signatures_dir / "S1.mailsignature").read_text(encoding="utf-8")
        assert '<body class="kept"><p>A</p></body>' in text
        # 템플릿 원본은 변경되지 않음
        assert (signatures_dir / "S0.mailsignature").read_text(encoding="utf-8") == TEMPLATE_FILE

    @pytest.mark.asyncio
    async def test_binary_index_stays_binary(self, native_store, signatures_dir):
        write_ordering_index(signatures_dir, {ACCOUNT_ID: {ACCOUNT_SIGNATURES_KEY: ["S0"]}}, binary=True)

        await native_store.write_signature(make_signature(), ACCOUNT_ID)

        assert (signatures_dir / "AccountsMap.plist").read_bytes().startswith(b"bplist00")

    @pytest.mark.asyncio
    async def test_restart_required_when_client_running(self, native_store, process_probe):
        process_probe.is_running.return_value = True

        result = await native_store.write_signature(make_signature(), ACCOUNT_ID)

        assert result.restart_required
        assert result.warnings
        process_probe.is_running.assert_awaited_once_with("Mail")

    @pytest.mark.asyncio
    async def test_corrupt_index_is_not_overwritten(self, native_store, signatures_dir):
        """읽을 수 없는 인덱스는 덮어쓰지 않는다"""
        (signatures_dir / "AccountsMap.plist").write_bytes(b"not a plist")

        with pytest.raises(CorruptIndexError):
            await native_store.write_signature(make_signature(), ACCOUNT_ID)

        assert (signatures_dir / "AccountsMap.plist").read_bytes() == b"not a plist"
        assert not (signatures_dir / "S1.mailsignature").exists()

    @pytest.mark.asyncio
    async def test_missing_mail_data_is_not_configured(self, tmp_path, logger, automation_bridge, process_probe):
        store = NativeSignatureStore(
            storage=MailDataDirectoryAdapter(tmp_path / "Empty", logger),
            codec=PlistCodecAdapter(),
            automation_bridge=automation_bridge,
            process_probe=process_probe,
            logger=logger,
        )
        with pytest.raises(NotConfiguredError):
            await store.write_signature(make_signature(), ACCOUNT_ID)


# ---------------------------------------------------------------------------
# 충돌 감지
# ---------------------------------------------------------------------------


class TestConflict:
    """마지막 동기화 이후 변경 감지"""

    @pytest.mark.asyncio
    async def test_changed_content_raises_conflict(self, native_store, signatures_dir):
        await native_store.write_signature(make_signature(html="<p>A</p>"), ACCOUNT_ID)
        baseline = baseline_for(content_hash("<p>A</p>"))

        # 사용자가 클라이언트에서 직접 수정
        path = signatures_dir / "S1.mailsignature"
        path.write_text(path.read_text(encoding="utf-8").replace("<p>A</p>", "<p>edited</p>"), encoding="utf-8")

        with pytest.raises(ConflictError) as exc_info:
            await native_store.write_signature(make_signature(html="<p>B</p>"), ACCOUNT_ID, baseline=baseline)

        assert exc_info.value.current_hash == content_hash("<p>edited</p>")
        assert exc_info.value.baseline_hash == baseline.last_hash
        assert "<p>edited</p>" in path.read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_force_overwrites_conflict(self, native_store, signatures_dir):
        await native_store.write_signature(make_signature(html="<p>edited</p>"), ACCOUNT_ID)
        baseline = baseline_for(content_hash("<p>A</p>"))

        result = await native_store.write_signature(
            make_signature(html="<p>B</p>"), ACCOUNT_ID, baseline=baseline, force=True
        )
        assert result.content_hash == content_hash("<p>B</p>")

    @pytest.mark.asyncio
    async def test_unchanged_content_passes(self, native_store):
        await native_store.write_signature(make_signature(html="<p>A</p>"), ACCOUNT_ID)
        baseline = baseline_for(content_hash("<p>A</p>"))

        result = await native_store.write_signature(make_signature(html="<p>B</p>"), ACCOUNT_ID, baseline=baseline)
        assert result.content_hash == content_hash("<p>B</p>")

    @pytest.mark.asyncio
    async def test_deleted_file_is_a_conflict(self, native_store, signatures_dir):
        """기준 해시가 있는데 서명 파일이 지워졌으면 충돌"""
        await native_store.write_signature(make_signature(), ACCOUNT_ID)
        (signatures_dir / "S1.mailsignature").unlink()

        with pytest.raises(ConflictError) as exc_info:
            await native_store.write_signature(
                make_signature(html="<p>B</p>"), ACCOUNT_ID, baseline=baseline_for(content_hash("<p>A</p>"))
            )
        assert exc_info.value.current_hash is None
        assert not (signatures_dir / "S1.mailsignature").exists()

    @pytest.mark.asyncio
    async def test_absent_state_without_baseline_hash(self, native_store):
        state = await native_store.check_conflict(make_signature(), ACCOUNT_ID, baseline_for(None))
        assert not state.present

    @pytest.mark.asyncio
    async def test_new_signature_compares_assigned_signature(self, native_store):
        """다른 서명으로 바꿀 때는 계정에 할당된 서명을 기준과 비교한다"""
        await native_store.write_signature(make_signature("S0", "<p>A</p>"), ACCOUNT_ID)

        result = await native_store.write_signature(
            make_signature("S1", "<p>B</p>"), ACCOUNT_ID, baseline=baseline_for(content_hash("<p>A</p>"))
        )
        assert result.content_hash == content_hash("<p>B</p>")

        with pytest.raises(ConflictError):
            await native_store.write_signature(
                make_signature("S2", "<p>C</p>"), ACCOUNT_ID, baseline=baseline_for(content_hash("<p>stale</p>"))
            )

    @pytest.mark.asyncio
    async def test_mtime_fallback_without_hash(self, native_store):
        """기준 해시가 없으면 수정 시간으로 비교한다"""
        await native_store.write_signature(make_signature(), ACCOUNT_ID)

        old_sync = baseline_for(None, now_utc() - timedelta(hours=1))
        with pytest.raises(ConflictError):
            await native_store.check_conflict(make_signature(), ACCOUNT_ID, old_sync)

        recent_sync = baseline_for(None, now_utc() + timedelta(hours=1))
        state = await native_store.check_conflict(make_signature(), ACCOUNT_ID, recent_sync)
        assert state.present


# ---------------------------------------------------------------------------
# 조회 / 가져오기 / 삭제
# ---------------------------------------------------------------------------


class TestReadImportDelete:
    """기존 서명 조회와 관리"""

    @pytest.mark.asyncio
    async def test_default_signature_state(self, native_store, signatures_dir):
        (signatures_dir / "S0.mailsignature").write_text(TEMPLATE_FILE, encoding="utf-8")
        write_ordering_index(signatures_dir, {ACCOUNT_ID: {ACCOUNT_SIGNATURES_KEY: ["S0"]}})

        state = await native_store.read_signature_state(ACCOUNT_ID)
        assert state.content == "<p>S0</p>"
        assert state.modified_at is not None

        assert not (await native_store.read_signature_state("OTHER")).present

    @pytest.mark.asyncio
    async def test_import_reads_html_and_plist_records(self, native_store, signatures_dir):
        (signatures_dir / "S0.mailsignature").write_text(TEMPLATE_FILE, encoding="utf-8")
        (signatures_dir / "P1.mailsignature").write_bytes(
            plistlib.dumps({"SignatureName": "Plain", "SignatureText": "Kim\nSeoul"})
        )
        write_name_index(signatures_dir, [{"SignatureUniqueId": "S0", "SignatureName": "Work"}])
        write_ordering_index(signatures_dir, {ACCOUNT_ID: {ACCOUNT_SIGNATURES_KEY: ["S0"]}})

        imported = {item.id: item for item in await native_store.import_signatures()}

        assert set(imported) == {"S0", "P1"}
        assert imported["S0"].name == "Work"
        assert imported["S0"].html == "<p>S0</p>"
        assert imported["S0"].account_ids == [ACCOUNT_ID]
        assert imported["P1"].name == "Plain"
        assert "Kim<br>Seoul" in imported["P1"].html
        assert imported["P1"].account_ids == []

    @pytest.mark.asyncio
    async def test_delete_removes_file_and_index_entries(self, native_store, signatures_dir):
        await native_store.write_signature(make_signature(), ACCOUNT_ID, make_default=True)

        assert await native_store.delete_signature("S1")

        assert not (signatures_dir / "S1.mailsignature").exists()
        assert read_plist(signatures_dir / "AccountsMap.plist")[ACCOUNT_ID][ACCOUNT_SIGNATURES_KEY] == []
        assert read_plist(signatures_dir / "AllSignatures.plist") == []
        assert not await native_store.delete_signature("S1")


# ---------------------------------------------------------------------------
# 계정 탐색
# ---------------------------------------------------------------------------


class TestDiscoverAccounts:
    """자동화 우선, 설정 파일 대체"""

    @pytest.mark.asyncio
    async def test_automation_accounts(self, native_store, automation_bridge):
        automation_bridge.probe.return_value = AutomationStatus.AVAILABLE
        automation_bridge.list_accounts.return_value = [
            {"id": "A1", "name": "iCloud", "user_name": "kim", "emails": ["kim@icloud.com"]},
            {"id": "A2", "name": "", "user_name": "", "emails": []},
        ]

        accounts = await native_store.discover_accounts()

        assert [a.id for a in accounts] == ["A1"]
        assert accounts[0].is_managed_cloud

    @pytest.mark.asyncio
    async def test_config_fallback(self, native_store, mail_root):
        account_dir = mail_root / "V10" / "MailData" / "Accounts" / "C1"
        account_dir.mkdir()
        (account_dir / "Info.plist").write_bytes(plistlib.dumps({
            "EmailAddresses": ["work@example.com"],
            "AccountName": "Work",
            "AccountType": "IMAPAccount",
        }))
        broken_dir = mail_root / "V10" / "MailData" / "Accounts" / "C2"
        broken_dir.mkdir()
        (broken_dir / "Info.plist").write_bytes(b"garbage")

        accounts = await native_store.discover_accounts()

        assert len(accounts) == 1
        assert accounts[0].id == "C1"
        assert accounts[0].email == "work@example.com"
        assert accounts[0].display_name == "Work"
        assert not accounts[0].is_managed_cloud

    @pytest.mark.asyncio
    async def test_no_accounts_is_not_configured(self, native_store):
        with pytest.raises(NotConfiguredError):
            await native_store.discover_accounts()

    @pytest.mark.asyncio
    async def test_denied_automation_without_configs(self, native_store, automation_bridge):
        automation_bridge.probe.return_value = AutomationStatus.DENIED

        with pytest.raises(AccessDeniedError) as exc_info:
            await native_store.discover_accounts()
        assert exc_info.value.scope == AccessDeniedError.AUTOMATION
        assert exc_info.value.remediation
