"""네이티브 서명 인덱스 테스트"""

import pytest

from core.domain.errors import CorruptIndexError
from core.usecases.signature_index import (
    ACCOUNT_SIGNATURES_KEY,
    SIGNATURE_ID_KEY,
    SIGNATURE_NAME_KEY,
    SIGNATURE_RICH_KEY,
    account_ordering,
    accounts_for_signature,
    ensure_name_index,
    ensure_ordering_index,
    place_signature,
    remove_name,
    remove_signature_everywhere,
    signature_names,
    upsert_name,
)


class TestEnsureDocuments:
    """문서 형식 확인"""

    def test_missing_documents_become_empty(self):
        assert ensure_name_index(None) == []
        assert ensure_ordering_index(None) == {}

    def test_wrong_shapes_raise(self):
        with pytest.raises(CorruptIndexError):
            ensure_name_index({"not": "a list"})
        with pytest.raises(CorruptIndexError):
            ensure_name_index(["string item"])
        with pytest.raises(CorruptIndexError):
            ensure_ordering_index(["not", "a", "dict"])
        with pytest.raises(CorruptIndexError):
            ensure_ordering_index({"ACC": "not a dict"})

    def test_non_list_account_signatures_raise(self):
        with pytest.raises(CorruptIndexError):
            account_ordering({"ACC": {ACCOUNT_SIGNATURES_KEY: "S0"}}, "ACC")


class TestPlaceSignature:
    """순서 목록 배치"""

    def test_default_moves_to_front(self):
        """기본 서명은 맨 앞에 온다"""
        index = {"ACC": {ACCOUNT_SIGNATURES_KEY: ["S0"]}}
        place_signature(index, "ACC", "S1", make_default=True)
        assert account_ordering(index, "ACC") == ["S1", "S0"]

    def test_existing_default_is_moved_not_duplicated(self):
        index = {"ACC": {ACCOUNT_SIGNATURES_KEY: ["S0", "S1", "S2"]}}
        place_signature(index, "ACC", "S2", make_default=True)
        assert account_ordering(index, "ACC") == ["S2", "S0", "S1"]

    def test_non_default_appends_once(self):
        index = {"ACC": {ACCOUNT_SIGNATURES_KEY: ["S0"]}}
        place_signature(index, "ACC", "S1", make_default=False)
        place_signature(index, "ACC", "S1", make_default=False)
        assert account_ordering(index, "ACC") == ["S0", "S1"]

    def test_duplicates_are_removed(self):
        index = {"ACC": {ACCOUNT_SIGNATURES_KEY: ["S0", "S0", "S1"]}}
        place_signature(index, "ACC", "S1", make_default=False)
        assert account_ordering(index, "ACC") == ["S0", "S1"]

    def test_new_account_entry_created(self):
        index = {}
        place_signature(index, "NEW", "S1", make_default=False)
        assert index == {"NEW": {ACCOUNT_SIGNATURES_KEY: ["S1"]}}

    def test_other_entry_keys_preserved(self):
        index = {"ACC": {ACCOUNT_SIGNATURES_KEY: ["S0"], "AccountURL": "imap://x"}}
        place_signature(index, "ACC", "S1", make_default=True)
        assert index["ACC"]["AccountURL"] == "imap://x"


class TestNameIndex:
    """이름 인덱스 갱신"""

    def test_upsert_adds_rich_entry(self):
        names = upsert_name([], "S1", "Work")
        assert names == [{SIGNATURE_ID_KEY: "S1", SIGNATURE_NAME_KEY: "Work", SIGNATURE_RICH_KEY: True}]

    def test_upsert_renames_and_keeps_other_keys(self):
        names = [{SIGNATURE_ID_KEY: "S1", SIGNATURE_NAME_KEY: "Old", "Extra": 1}]
        upsert_name(names, "S1", "New")
        assert len(names) == 1
        assert names[0][SIGNATURE_NAME_KEY] == "New"
        assert names[0]["Extra"] == 1

    def test_signature_names_and_remove(self):
        names = upsert_name(upsert_name([], "S1", "Work"), "S2", "Home")
        assert signature_names(names) == {"S1": "Work", "S2": "Home"}
        assert signature_names(remove_name(names, "S1")) == {"S2": "Home"}


class TestRemoveEverywhere:
    def test_removes_from_all_accounts(self):
        index = {
            "A": {ACCOUNT_SIGNATURES_KEY: ["S1", "S2"]},
            "B": {ACCOUNT_SIGNATURES_KEY: ["S2"]},
            "C": {ACCOUNT_SIGNATURES_KEY: ["S3"]},
        }
        assert accounts_for_signature(index, "S2") == ["A", "B"]
        remove_signature_everywhere(index, "S2")
        assert account_ordering(index, "A") == ["S1"]
        assert account_ordering(index, "B") == []
        assert accounts_for_signature(index, "S2") == []
