"""
프로퍼티 리스트 코덱 어댑터

네이티브 메일 클라이언트의 인덱스 문서(XML 또는 바이너리 plist)를 읽고 씁니다.
다시 쓸 때는 원본 파일의 형식을 유지합니다.
"""

import plistlib
from typing import Any, Optional
from xml.parsers.expat import ExpatError

from core.domain.errors import CorruptIndexError, FatalError
from core.domain.ports import StructuredCodecPort

BINARY_MAGIC = b"bplist00"


class PlistCodecAdapter(StructuredCodecPort):
    """plistlib 기반 코덱"""

    def decode(self, data: bytes) -> Any:
        """
        plist 바이트를 디코딩합니다.

        Raises:
            CorruptIndexError: 형식이 올바르지 않은 경우
        """
        try:
            return plistlib.loads(data)
        except (plistlib.InvalidFileException, ExpatError, ValueError, TypeError, IndexError, KeyError) as e:
            raise CorruptIndexError(f"plist 문서를 해석할 수 없습니다: {e}") from e

    def encode(self, document: Any, like: Optional[bytes] = None) -> bytes:
        """
        문서를 plist 바이트로 인코딩합니다.

        Args:
            document: 인코딩할 문서
            like: 원본 바이트 (바이너리 plist면 바이너리로 인코딩)
        """
        fmt = plistlib.FMT_BINARY if like is not None and like.startswith(BINARY_MAGIC) else plistlib.FMT_XML
        try:
            return plistlib.dumps(document, fmt=fmt, sort_keys=False)
        except (TypeError, OverflowError) as e:
            raise FatalError(f"plist 문서를 인코딩할 수 없습니다: {e}") from e
