"""
데이터베이스 어댑터 패키지
"""
