"""
네이티브 서명 파일 템플릿 처리

서명 파일은 헤더 블록(첫 빈 줄까지)과 HTML 본문으로 구성됩니다.
본문의 <body ...>와 </body> 사이가 콘텐츠 영역이며, 그 밖의 바이트는 그대로 보존합니다.
"""

import html
import re
from typing import Optional, Tuple

from bs4 import BeautifulSoup

DEFAULT_HEADER = (
    "Content-Transfer-Encoding: 7bit\n"
    "Content-Type: text/html;\n"
    "\tcharset=utf-8\n"
    "Mime-Version: 1.0 (Mac OS X Mail 16.0)\n"
    "\n"
)

DEFAULT_BODY_OPEN = (
    '<body style="word-wrap: break-word; -webkit-nbsp-mode: space; line-break: after-white-space;">'
)

DEFAULT_TEMPLATE = f"{DEFAULT_HEADER}{DEFAULT_BODY_OPEN}</body>"

_HEADER_SEPARATOR = re.compile(r"\r?\n\r?\n")
_BODY_OPEN = re.compile(r"<body\b[^>]*>", re.IGNORECASE)
_BODY_CLOSE = re.compile(r"</body\s*>", re.IGNORECASE)
_HEADER_LINE = re.compile(r"^[A-Za-z][A-Za-z0-9-]*:")


class TemplateLayout:
    """서명 파일을 (앞부분, 콘텐츠, 뒷부분)으로 나눈 결과"""

    def __init__(self, prefix: str, content: str, suffix: str):
        self.prefix = prefix
        self.content = content
        self.suffix = suffix

    def compose(self, content: str) -> str:
        """콘텐츠 영역만 교체한 전체 문서"""
        return f"{self.prefix}{content}{self.suffix}"


def split_header(text: str) -> Tuple[str, str]:
    """
    헤더 블록과 본문을 분리합니다.

    첫 줄이 헤더 형식이 아니면 헤더가 없는 문서로 취급합니다.

    Returns:
        (구분 빈 줄을 포함한 헤더, 본문)
    """
    if not _HEADER_LINE.match(text):
        return "", text
    match = _HEADER_SEPARATOR.search(text)
    if not match:
        return "", text
    return text[:match.end()], text[match.end():]


def parse_layout(text: str) -> Optional[TemplateLayout]:
    """
    서명 파일 텍스트에서 콘텐츠 영역을 찾습니다.

    Returns:
        TemplateLayout 또는 템플릿으로 쓸 수 없으면 None
    """
    header, body = split_header(text)
    if not header:
        return None

    open_match = _BODY_OPEN.search(body)
    if open_match is None:
        return TemplateLayout(header, body, "")

    close_match = _BODY_CLOSE.search(body, open_match.end())
    if close_match is None:
        return None

    return TemplateLayout(
        header + body[:open_match.end()],
        body[open_match.end():close_match.start()],
        body[close_match.start():],
    )


def default_layout() -> TemplateLayout:
    """기본 래퍼 레이아웃"""
    return parse_layout(DEFAULT_TEMPLATE)


def extract_content(text: str) -> str:
    """서명 파일의 콘텐츠 영역을 반환합니다. 형식을 알 수 없으면 전체를 반환합니다."""
    layout = parse_layout(text)
    if layout is None:
        return text
    return layout.content


def looks_like_html(text: str) -> bool:
    lowered = text.lower()
    if "<html" in lowered or "<!doctype" in lowered:
        return True
    return "<" in text and ">" in text


def plain_text_to_html(text: str) -> str:
    """일반 텍스트 서명을 HTML로 변환합니다."""
    if looks_like_html(text):
        return text
    escaped = html.escape(text, quote=False).replace("\n", "<br>")
    return f'<div style="font-family: system-ui, -apple-system, sans-serif;">{escaped}</div>'


_EMBEDDED_IMAGE = re.compile(r"data:image/[^;]+;base64,", re.IGNORECASE)


def _is_embedded_src(src: Optional[str]) -> bool:
    return bool(src) and bool(_EMBEDDED_IMAGE.match(src.strip()))


def has_embedded_images(text: str) -> bool:
    """base64 내장 이미지 포함 여부 (img 태그, style 속성, style 태그)"""
    soup = BeautifulSoup(text, "html.parser")
    if soup.find("img", src=_is_embedded_src):
        return True
    if soup.find(style=_EMBEDDED_IMAGE):
        return True
    return any(_EMBEDDED_IMAGE.search(tag.get_text()) for tag in soup.find_all("style"))


def strip_embedded_images(text: str) -> Tuple[str, int]:
    """
    base64 내장 이미지 태그를 제거합니다.

    CSS 안의 내장 이미지는 건드리지 않습니다. 제거할 태그가 없으면 원문을 그대로 반환합니다.

    Returns:
        (제거된 HTML, 제거된 태그 수)
    """
    soup = BeautifulSoup(text, "html.parser")
    images = soup.find_all("img", src=_is_embedded_src)
    if not images:
        return text, 0

    for tag in images:
        tag.decompose()
    return str(soup), len(images)
