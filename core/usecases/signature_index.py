"""
네이티브 서명 인덱스 처리

이름 인덱스(서명 ID -> 표시 이름)와 순서 인덱스(계정 ID -> 서명 ID 목록)를
디코딩된 문서 위에서 갱신합니다. 디스크 형식은 코덱이 담당합니다.
"""

from typing import Any, Dict, List, Optional

from ..domain.errors import CorruptIndexError

NAME_INDEX_FILE = "AllSignatures.plist"
ORDERING_INDEX_FILE = "AccountsMap.plist"

SIGNATURE_ID_KEY = "SignatureUniqueId"
SIGNATURE_NAME_KEY = "SignatureName"
SIGNATURE_RICH_KEY = "SignatureIsRich"
ACCOUNT_SIGNATURES_KEY = "Signatures"
ACCOUNT_URL_KEY = "AccountURL"


def ensure_name_index(document: Optional[Any]) -> List[Dict[str, Any]]:
    """
    이름 인덱스 문서 형식을 확인합니다.

    Raises:
        CorruptIndexError: 배열 형식이 아닌 경우
    """
    if document is None:
        return []
    if not isinstance(document, list) or not all(isinstance(item, dict) for item in document):
        raise CorruptIndexError("이름 인덱스 형식이 올바르지 않습니다", path=NAME_INDEX_FILE)
    return document


def ensure_ordering_index(document: Optional[Any]) -> Dict[str, Any]:
    """
    순서 인덱스 문서 형식을 확인합니다.

    Raises:
        CorruptIndexError: 사전 형식이 아닌 경우
    """
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise CorruptIndexError("순서 인덱스 형식이 올바르지 않습니다", path=ORDERING_INDEX_FILE)
    for account_id, entry in document.items():
        if not isinstance(entry, dict):
            raise CorruptIndexError(
                f"계정 항목 형식이 올바르지 않습니다: {account_id}",
                path=ORDERING_INDEX_FILE,
            )
    return document


def signature_names(name_index: List[Dict[str, Any]]) -> Dict[str, str]:
    """서명 ID -> 표시 이름"""
    names = {}
    for item in name_index:
        signature_id = item.get(SIGNATURE_ID_KEY)
        if signature_id:
            names[signature_id] = item.get(SIGNATURE_NAME_KEY, "")
    return names


def upsert_name(name_index: List[Dict[str, Any]], signature_id: str, name: str) -> List[Dict[str, Any]]:
    """이름 항목을 추가하거나 갱신합니다. 기존 항목의 다른 키는 보존합니다."""
    for item in name_index:
        if item.get(SIGNATURE_ID_KEY) == signature_id:
            item[SIGNATURE_NAME_KEY] = name
            item.setdefault(SIGNATURE_RICH_KEY, True)
            return name_index

    name_index.append({
        SIGNATURE_ID_KEY: signature_id,
        SIGNATURE_NAME_KEY: name,
        SIGNATURE_RICH_KEY: True,
    })
    return name_index


def remove_name(name_index: List[Dict[str, Any]], signature_id: str) -> List[Dict[str, Any]]:
    return [item for item in name_index if item.get(SIGNATURE_ID_KEY) != signature_id]


def account_ordering(ordering_index: Dict[str, Any], account_id: str) -> List[str]:
    """계정의 서명 ID 목록 (첫 번째가 기본 서명)"""
    entry = ordering_index.get(account_id)
    if not entry:
        return []
    signatures = entry.get(ACCOUNT_SIGNATURES_KEY, [])
    if not isinstance(signatures, list):
        raise CorruptIndexError(
            f"계정 서명 목록 형식이 올바르지 않습니다: {account_id}",
            path=ORDERING_INDEX_FILE,
        )
    return list(signatures)


def place_signature(
    ordering_index: Dict[str, Any],
    account_id: str,
    signature_id: str,
    make_default: bool,
) -> Dict[str, Any]:
    """
    계정 순서 목록에 서명을 배치합니다.

    기본 서명이면 맨 앞으로 옮기고, 아니면 기존 위치를 유지하거나 맨 뒤에 추가합니다.
    결과 목록에는 중복 ID가 없습니다.
    """
    current = account_ordering(ordering_index, account_id)

    deduped: List[str] = []
    for existing_id in current:
        if existing_id not in deduped:
            deduped.append(existing_id)

    if make_default:
        deduped = [signature_id] + [i for i in deduped if i != signature_id]
    elif signature_id not in deduped:
        deduped.append(signature_id)

    entry = ordering_index.setdefault(account_id, {})
    entry[ACCOUNT_SIGNATURES_KEY] = deduped
    return ordering_index


def remove_signature_everywhere(ordering_index: Dict[str, Any], signature_id: str) -> Dict[str, Any]:
    """모든 계정 목록에서 서명 ID를 제거합니다."""
    for account_id in list(ordering_index.keys()):
        signatures = account_ordering(ordering_index, account_id)
        if signature_id in signatures:
            ordering_index[account_id][ACCOUNT_SIGNATURES_KEY] = [
                i for i in signatures if i != signature_id
            ]
    return ordering_index


def accounts_for_signature(ordering_index: Dict[str, Any], signature_id: str) -> List[str]:
    return [
        account_id
        for account_id in ordering_index
        if signature_id in account_ordering(ordering_index, account_id)
    ]
