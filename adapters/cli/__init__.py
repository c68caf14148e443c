"""
CLI 명령어 패키지
"""
