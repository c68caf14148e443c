"""
어댑터 패키지

Core 포트의 구현체와 CLI/웹 진입점을 포함합니다.
"""
