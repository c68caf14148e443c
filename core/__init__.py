"""
Core 패키지

도메인 모델과 유즈케이스로 구성되며 어댑터에 의존하지 않습니다.
"""
