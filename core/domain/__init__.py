"""
Domain 패키지

도메인 엔티티, 오류, 포트를 정의합니다.
외부 의존성 없이 순수한 비즈니스 규칙만 포함합니다.

주요 엔티티:
- CanonicalSignature: 정규 서명 레코드
- AccountBinding: 서명과 대상 계정 간의 바인딩
- NativeAccount / RemoteIdentity: 탐색된 대상 계정
- SyncLedgerEntry: 바인딩별 마지막 동기화 기록
- OAuthCredential: 원격 저장소 자격 증명
"""
