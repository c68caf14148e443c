"""
FastAPI 웹 서버

웹메일(Gmail) OAuth 인증 콜백을 받기 위한 웹 인터페이스를 제공합니다.
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.responses import HTMLResponse

from adapters.factory import get_adapter_factory
from adapters.logger import create_logger
from adapters.web.auth_routes import router as auth_router
from config.adapters import get_config

# 로거 설정
logger = create_logger("web_server")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """서버 시작/종료 시 데이터베이스 연결을 관리합니다."""
    logger.info("FastAPI 웹 서버 시작")

    factory = get_adapter_factory()
    await factory.initialize_database()

    config = factory.get_config()
    logger.info(f"환경: {config.get_environment()}")
    logger.info(f"데이터베이스: {config.get_database_url()}")
    logger.info("웹 서버 준비 완료")

    yield

    logger.info("FastAPI 웹 서버 종료")
    await factory.close()


# FastAPI 앱 생성
app = FastAPI(
    title="서명 동기화 인증 서비스",
    description="웹메일 OAuth 2.0 인증 콜백을 위한 웹 인터페이스",
    version="1.0.0",
    lifespan=lifespan,
)

# 라우터 등록
app.include_router(auth_router)


@app.get("/", response_class=HTMLResponse)
async def root():
    """홈페이지"""
    html_content = """
    <!DOCTYPE html>
    <html>
    <head>
        <title>서명 동기화 인증 서비스</title>
        <style>
            body {
                font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
                padding: 40px;
                max-width: 800px;
                margin: 0 auto;
                background: #f5f5f5;
            }
            .container {
                background: white;
                padding: 40px;
                border-radius: 12px;
                box-shadow: 0 2px 8px rgba(0,0,0,0.1);
            }
            h1 { color: #1a73e8; margin-bottom: 30px; }
            input[type="email"] {
                padding: 8px 12px;
                border: 1px solid #8a8886;
                border-radius: 4px;
                width: 300px;
                margin-right: 10px;
            }
            button {
                padding: 8px 16px;
                background: #1a73e8;
                color: white;
                border: none;
                border-radius: 4px;
                cursor: pointer;
            }
        </style>
    </head>
    <body>
        <div class="container">
            <h1>서명 동기화 인증 서비스</h1>
            <p>웹메일 계정의 서명을 관리하려면 먼저 계정을 인증하세요.</p>
            <form action="/auth/start" method="get">
                <input type="email" name="email" placeholder="이메일 주소 (선택)">
                <button type="submit">인증 시작</button>
            </form>
        </div>
    </body>
    </html>
    """
    return HTMLResponse(content=html_content)


if __name__ == "__main__":
    # 설정 로드
    config = get_config()

    # 서버 실행
    uvicorn.run(
        "web_server:app",
        host=config.get_web_host(),
        port=config.get_web_port(),
        reload=config.is_debug(),
        log_level=config.get_log_level().lower(),
    )
