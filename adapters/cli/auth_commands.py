"""
인증 관련 CLI 명령어

웹메일(Gmail) OAuth 2.0 Authorization Code Flow (PKCE)를 처리하는 CLI 명령어들입니다.
"""

from typing import Optional

import typer
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm
from rich.table import Table

from adapters.cli.common import console, run_async

auth_app = typer.Typer(help="인증 관련 명령어")


@auth_app.command("start")
def start_authorization(
    login_hint: Optional[str] = typer.Option(None, "--email", "-e", help="로그인할 계정 이메일 (힌트)"),
):
    """Authorization Code Flow 인증을 시작합니다."""

    async def _start(factory):
        auth_usecase = factory.create_authentication_usecase()
        authorization_url, state = await auth_usecase.start_authorization_code_flow(login_hint)

        console.print(Panel.fit(
            f"[bold green]Authorization Code Flow 시작됨[/bold green]\n\n"
            f"[bold]State:[/bold] {state}\n\n"
            f"[bold]다음 URL로 이동하여 인증을 완료하세요:[/bold]\n"
            f"[link]{authorization_url}[/link]\n\n"
            f"[yellow]웹 서버가 실행 중이면 콜백에서 자동으로 완료됩니다.[/yellow]\n"
            f"[yellow]그렇지 않으면 받은 코드로 다음 명령어를 실행하세요:[/yellow]\n"
            f"[cyan]sigsync auth complete --code <CODE> --state {state}[/cyan]",
            title="🔐 Authorization Code Flow",
        ))

    run_async(_start)


@auth_app.command("complete")
def complete_authorization(
    code: str = typer.Option(..., "--code", "-c", help="인증 코드"),
    state: str = typer.Option(..., "--state", "-s", help="State 값"),
):
    """Authorization Code Flow 인증을 완료합니다."""

    async def _complete(factory):
        auth_usecase = factory.create_authentication_usecase()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("토큰 교환 중...", total=None)
            credential = await auth_usecase.complete_authorization_code_flow(code, state)
            progress.update(task, description="완료!")

        console.print(Panel.fit(
            f"[bold green]인증 완료![/bold green]\n\n"
            f"[bold]계정:[/bold] {credential.email}\n"
            f"[bold]만료 시간:[/bold] {credential.expires_at}",
            title="✅ 인증 성공",
        ))

    run_async(_complete)


@auth_app.command("refresh")
def refresh_token(
    email: str = typer.Option(..., "--email", "-e", help="계정 이메일"),
):
    """토큰을 강제로 갱신합니다."""

    async def _refresh(factory):
        auth_usecase = factory.create_authentication_usecase()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("토큰 갱신 중...", total=None)
            credential = await auth_usecase.force_refresh(email)
            progress.update(task, description="완료!")

        console.print(Panel.fit(
            f"[bold green]토큰 갱신 완료![/bold green]\n\n"
            f"[bold]계정:[/bold] {credential.email}\n"
            f"[bold]만료 시간:[/bold] {credential.expires_at}",
            title="🔄 토큰 갱신",
        ))

    run_async(_refresh)


@auth_app.command("revoke")
def revoke_token(
    email: str = typer.Option(..., "--email", "-e", help="계정 이메일"),
    force: bool = typer.Option(False, "--force", "-f", help="확인 없이 강제 실행"),
):
    """저장된 자격 증명을 폐기합니다."""
    if not force and not Confirm.ask(f"정말로 {email} 계정의 자격 증명을 삭제하시겠습니까?"):
        console.print("[yellow]취소되었습니다.[/yellow]")
        return

    async def _revoke(factory):
        removed = await factory.create_authentication_usecase().revoke(email)
        if removed:
            console.print(f"[green]자격 증명이 삭제되었습니다: {email}[/green]")
        else:
            console.print(f"[yellow]삭제할 자격 증명이 없습니다: {email}[/yellow]")

    run_async(_revoke)


@auth_app.command("status")
def token_status(
    email: Optional[str] = typer.Option(None, "--email", "-e", help="계정 이메일 (생략 시 전체)"),
):
    """저장된 자격 증명의 상태를 조회합니다."""

    async def _status(factory):
        auth_usecase = factory.create_authentication_usecase()
        emails = [email] if email else await factory.create_credential_store().list_emails()

        if not emails:
            console.print("[yellow]저장된 자격 증명이 없습니다.[/yellow]")
            return

        table = Table(title="🔑 자격 증명 상태")
        table.add_column("계정", style="cyan")
        table.add_column("만료 시간", style="white")
        table.add_column("남은 시간", style="white")
        table.add_column("상태", style="white")
        table.add_column("Refresh Token", style="white")

        for item in emails:
            status = await auth_usecase.get_token_status(item)
            if status is None:
                table.add_row(item, "-", "-", "[red]없음 (재인증 필요)[/red]", "-")
                continue

            if status["is_expired"]:
                state = "[red]만료[/red]"
            elif status["is_near_expiry"]:
                state = "[yellow]만료 임박[/yellow]"
            else:
                state = "[green]유효[/green]"

            table.add_row(
                status["email"],
                str(status["expires_at"]),
                f"{int(status['remaining_seconds'])}초",
                state,
                "있음" if status["has_refresh_token"] else "없음",
            )

        console.print(table)

    run_async(_status)
