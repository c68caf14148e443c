"""
서명 동기화 엔진

메인 진입점 파일입니다.
"""

import typer
from rich.console import Console

from adapters.cli.account_commands import app as account_app
from adapters.cli.auth_commands import auth_app
from adapters.cli.common import run_async
from adapters.cli.db_commands import app as db_app
from adapters.cli.sync_commands import app as sync_app
from config.adapters import get_config

__version__ = "1.0.0"

# 메인 CLI 앱
app = typer.Typer(
    name="sigsync",
    help="메일 서명 동기화 엔진 (Apple Mail / Gmail)",
    no_args_is_help=True,
)

# 서브 명령어 추가
app.add_typer(account_app, name="account")
app.add_typer(auth_app, name="auth")
app.add_typer(sync_app, name="sync")
app.add_typer(db_app, name="db")

console = Console()


@app.command("init-db")
def init_database(
    drop_existing: bool = typer.Option(False, "--drop", help="기존 테이블을 삭제하고 재생성"),
):
    """데이터베이스를 초기화합니다."""

    async def _init_db(factory):
        config = factory.get_config()
        console.print(f"[blue]환경: {config.get_environment()}[/blue]")
        console.print(f"[blue]데이터베이스: {config.get_database_url()}[/blue]")

        database = factory.create_database()
        await database.initialize()

        if drop_existing:
            console.print("[yellow]기존 테이블을 삭제하는 중...[/yellow]")
            await database.drop_tables()

        console.print("[blue]데이터베이스 테이블을 생성하는 중...[/blue]")
        await database.create_tables()

        console.print("[green]✓ 데이터베이스가 성공적으로 초기화되었습니다![/green]")

    run_async(_init_db, needs_database=False)


@app.command("version")
def show_version():
    """버전 정보를 표시합니다."""
    console.print("[bold]메일 서명 동기화 엔진[/bold]")
    console.print(f"버전: {__version__}")


@app.command("config")
def show_config():
    """현재 설정을 표시합니다."""
    try:
        config = get_config()
    except ValueError as e:
        console.print(f"[red]오류: {str(e)}[/red]")
        raise typer.Exit(1)

    min_version, max_version = config.get_native_version_range()
    console.print("[bold]현재 설정[/bold]")
    console.print(f"환경: {config.get_environment()}")
    console.print(f"디버그 모드: {config.is_debug()}")
    console.print(f"데이터베이스 URL: {config.get_database_url()}")
    console.print(f"OAuth 리다이렉트 URI: {config.get_oauth_redirect_uri()}")
    console.print(f"OAuth 범위: {config.get_oauth_scopes()}")
    console.print(f"Gmail API: {config.get_gmail_api_base_url()}")
    console.print(f"메일 데이터 루트: {config.get_native_mail_root()} (V{min_version}~V{max_version})")
    console.print(f"메일 클라이언트: {config.get_native_client_name()}")
    console.print(f"동시 동기화 수: {config.get_sync_max_concurrency()}")
    console.print(f"재시도: 최대 {config.get_retry_max_attempts()}회, 기본 대기 {config.get_retry_base_delay()}초")
    console.print(f"로그 레벨: {config.get_log_level()}")
    console.print(f"웹 서버: {config.get_web_host()}:{config.get_web_port()}")


if __name__ == "__main__":
    app()
