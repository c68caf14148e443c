"""
유즈케이스 패키지

자격 증명 보관, 인증, 네이티브/원격 서명 저장소, 동기화 원장과 코디네이터를 포함합니다.
"""
