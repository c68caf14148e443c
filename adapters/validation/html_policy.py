"""
HTML 정책 검증 어댑터

서명 HTML의 보안/호환성/성능 문제를 정규식 규칙으로 찾습니다.
오류 심각도는 배포를 차단하고, 경고와 정보는 권고 사항으로만 전달됩니다.
"""

import re
from typing import List

from core.domain.entities import ValidationCategory, ValidationFinding, ValidationSeverity
from core.domain.ports import ContentPolicyPort

UNSAFE_TAGS = ["script", "iframe", "object", "embed", "form", "input", "button", "link"]
UNSAFE_ATTRIBUTES = ["onclick", "onload", "onerror", "onmouseover", "onmouseout", "onfocus", "onblur"]

PROBLEMATIC_CSS = [
    (r"position\s*:\s*fixed", "position: fixed"),
    (r"position\s*:\s*absolute", "position: absolute"),
    (r"float\s*:", "float"),
    (r"display\s*:\s*flex", "display: flex"),
    (r"display\s*:\s*grid", "display: grid"),
]

BASE64_IMAGE = re.compile(r"data:image/[^;]+;base64,")
MEDIA_QUERY = re.compile(r"@media\s*\([^)]+\)")
EXTERNAL_RESOURCE = re.compile(r"(src|href)\s*=\s*[\"']https?://")

LARGE_SIZE_KB = 500
MODERATE_SIZE_KB = 100


class HtmlPolicyValidator(ContentPolicyPort):
    """HTML 정책 검증기"""

    def validate(self, html: str) -> List[ValidationFinding]:
        findings: List[ValidationFinding] = []
        findings.extend(self._check_unsafe_tags(html))
        findings.extend(self._check_unsafe_attributes(html))
        findings.extend(self._check_base64_images(html))
        findings.extend(self._check_media_queries(html))
        findings.extend(self._check_content_size(html))
        findings.extend(self._check_email_compatibility(html))
        return findings

    # 보안

    def _check_unsafe_tags(self, html: str) -> List[ValidationFinding]:
        findings = []
        for tag in UNSAFE_TAGS:
            if re.search(rf"<\s*{tag}\b[^>]*>", html, re.IGNORECASE):
                findings.append(_finding(
                    f"안전하지 않은 태그 '<{tag}>'가 있습니다. 메일 클라이언트가 제거할 수 있습니다",
                    ValidationSeverity.ERROR,
                    ValidationCategory.SECURITY,
                ))
        return findings

    def _check_unsafe_attributes(self, html: str) -> List[ValidationFinding]:
        findings = []
        for attribute in UNSAFE_ATTRIBUTES:
            if re.search(rf"\b{attribute}\s*=", html, re.IGNORECASE):
                findings.append(_finding(
                    f"안전하지 않은 속성 '{attribute}'가 있습니다. 서명에서는 JavaScript 이벤트를 지원하지 않습니다",
                    ValidationSeverity.ERROR,
                    ValidationCategory.SECURITY,
                ))
        return findings

    # 호환성

    def _check_base64_images(self, html: str) -> List[ValidationFinding]:
        if not BASE64_IMAGE.search(html):
            return []
        return [_finding(
            "base64 내장 이미지가 있습니다. 네이티브 클라이언트에서는 동작하지만 웹메일에서는 제거됩니다",
            ValidationSeverity.WARNING,
            ValidationCategory.COMPATIBILITY,
        )]

    def _check_media_queries(self, html: str) -> List[ValidationFinding]:
        if not MEDIA_QUERY.search(html):
            return []
        return [_finding(
            "CSS 미디어 쿼리가 있습니다. 웹메일에서는 무시됩니다",
            ValidationSeverity.INFO,
            ValidationCategory.COMPATIBILITY,
        )]

    def _check_email_compatibility(self, html: str) -> List[ValidationFinding]:
        findings = []
        for pattern, name in PROBLEMATIC_CSS:
            if re.search(pattern, html, re.IGNORECASE):
                findings.append(_finding(
                    f"CSS 속성 '{name}'은(는) 메일 클라이언트 지원이 제한적입니다",
                    ValidationSeverity.WARNING,
                    ValidationCategory.COMPATIBILITY,
                ))

        if EXTERNAL_RESOURCE.search(html):
            findings.append(_finding(
                "외부 리소스(이미지, 스타일시트)는 보안상 차단될 수 있습니다",
                ValidationSeverity.INFO,
                ValidationCategory.COMPATIBILITY,
            ))
        return findings

    # 성능

    def _check_content_size(self, html: str) -> List[ValidationFinding]:
        size_kb = len(html.encode("utf-8")) / 1024.0
        if size_kb > LARGE_SIZE_KB:
            return [_finding(
                f"서명이 매우 큽니다 ({size_kb:.1f} KB). 내용을 줄이는 것이 좋습니다",
                ValidationSeverity.WARNING,
                ValidationCategory.PERFORMANCE,
            )]
        if size_kb > MODERATE_SIZE_KB:
            return [_finding(
                f"서명이 다소 큽니다 ({size_kb:.1f} KB)",
                ValidationSeverity.INFO,
                ValidationCategory.PERFORMANCE,
            )]
        return []


def _finding(message: str, severity: ValidationSeverity, category: ValidationCategory) -> ValidationFinding:
    return ValidationFinding(message=message, severity=severity, category=category)
