"""
네이티브 메일 클라이언트 어댑터 패키지

메일 데이터 디렉터리, plist 코덱, 자동화 브리지, 프로세스 감지를 포함합니다.
"""
