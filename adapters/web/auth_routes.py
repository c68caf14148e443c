"""
FastAPI 인증 라우터

Authorization Code Flow 시작과 콜백 처리를 위한 웹 인터페이스입니다.
"""

from html import escape
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import HTMLResponse, RedirectResponse

from core.domain.errors import SyncError
from core.usecases.authentication import AuthenticationUseCase
from adapters.factory import get_adapter_factory
from adapters.logger import create_logger

router = APIRouter(prefix="/auth", tags=["authentication"])
logger = create_logger("auth_router")

PAGE_STYLE = """
    body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; padding: 40px; max-width: 600px; margin: 0 auto; }
    .success { color: #2e7d32; background: #e8f5e9; padding: 20px; border-radius: 8px; }
    .error { color: #d32f2f; background: #ffebee; padding: 20px; border-radius: 8px; }
    .info { background: #f0f0f0; padding: 20px; border-radius: 8px; margin-top: 20px; }
    code { background: #f0f0f0; padding: 5px; }
"""


def get_authentication_usecase() -> AuthenticationUseCase:
    """인증 유즈케이스 의존성"""
    return get_adapter_factory().create_authentication_usecase()


def _page(title: str, body: str, status_code: int = 200) -> HTMLResponse:
    html_content = f"""
    <!DOCTYPE html>
    <html>
    <head>
        <title>{title}</title>
        <style>{PAGE_STYLE}</style>
    </head>
    <body>
        <h1>{title}</h1>
        {body}
    </body>
    </html>
    """
    return HTMLResponse(content=html_content, status_code=status_code)


def _error_page(message: str, detail: Optional[str] = None, status_code: int = 400) -> HTMLResponse:
    extra = f"<p><strong>조치:</strong> {escape(detail)}</p>" if detail else ""
    return _page(
        "인증 오류",
        f'<div class="error"><p>{escape(message)}</p>{extra}</div>'
        '<p style="margin-top: 20px;"><a href="/">홈으로 돌아가기</a></p>',
        status_code=status_code,
    )


@router.get("/start")
async def start_auth(
    email: Optional[str] = Query(None, description="로그인할 계정 이메일 (힌트)"),
    auth_usecase: AuthenticationUseCase = Depends(get_authentication_usecase),
):
    """인증 플로우를 시작하고 동의 화면으로 리다이렉트합니다."""
    logger.info(f"인증 시작 요청: email={email}")

    auth_url, state = await auth_usecase.start_authorization_code_flow(login_hint=email)
    logger.info(f"인증 URL 생성 완료: state={state}")

    return RedirectResponse(url=auth_url)


@router.get("/callback", response_class=HTMLResponse)
async def auth_callback(
    code: Optional[str] = Query(None, description="인증 코드"),
    state: Optional[str] = Query(None, description="State 값"),
    error: Optional[str] = Query(None, description="오류 코드"),
    error_description: Optional[str] = Query(None, description="오류 설명"),
    auth_usecase: AuthenticationUseCase = Depends(get_authentication_usecase),
):
    """OAuth 리다이렉트 콜백을 처리합니다."""
    logger.info(f"인증 콜백 수신: state={state}, error={error}")

    if error:
        logger.error(f"인증 오류: {error}, {error_description}")
        return _error_page(f"{error}: {error_description or ''}")

    # 필수 파라미터 확인
    if not code or not state:
        logger.error("필수 파라미터 누락")
        raise HTTPException(status_code=400, detail="필수 파라미터가 누락되었습니다")

    try:
        credential = await auth_usecase.complete_authorization_code_flow(code=code, state=state)
    except ValueError as e:
        logger.error(f"인증 콜백 처리 실패: {str(e)}")
        return _error_page(str(e))
    except SyncError as e:
        logger.error(f"인증 콜백 처리 실패: {str(e)}")
        return _error_page(str(e), e.remediation, status_code=502)

    logger.info(f"인증 완료: {credential.email}")
    return _page(
        "인증 성공!",
        f"""
        <div class="success"><p>웹메일 계정 인증이 완료되었습니다.</p></div>
        <div class="info">
            <p><strong>이메일:</strong> {escape(credential.email)}</p>
            <p><strong>토큰 만료:</strong> {credential.expires_at.strftime('%Y-%m-%d %H:%M:%S UTC')}</p>
        </div>
        <p style="margin-top: 30px;">
            이제 이 창을 닫고 CLI에서 다음 명령어를 사용할 수 있습니다:<br>
            <code>sigsync account remote-identities --email {escape(credential.email)}</code>
        </p>
        """,
    )


@router.get("/status/{email}")
async def get_auth_status(
    email: str,
    auth_usecase: AuthenticationUseCase = Depends(get_authentication_usecase),
):
    """계정의 자격 증명 상태를 조회합니다."""
    logger.info(f"인증 상태 조회: {email}")

    status = await auth_usecase.get_token_status(email)
    if status is None:
        raise HTTPException(status_code=404, detail="저장된 자격 증명이 없습니다")
    return status
