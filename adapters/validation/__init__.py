"""
콘텐츠 검증 어댑터 패키지
"""
