"""
계정 관련 CLI 명령어

네이티브 메일 계정 탐색, 기존 서명 가져오기, 원격 아이덴티티 조회를 제공합니다.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.panel import Panel
from rich.table import Table

from core.domain.entities import AccountBinding, CanonicalSignature, StoreKind
from adapters.cli.common import console, run_async, save_json

# CLI 앱 생성
app = typer.Typer(name="account", help="계정 탐색 명령어")


@app.command("native-access")
def native_access():
    """네이티브 메일 데이터 접근 권한을 확인합니다."""

    async def _check(factory):
        status = await factory.create_native_store().check_access()
        color = "green" if status.is_accessible else "red"
        console.print(Panel.fit(
            f"[bold {color}]{status.value}[/bold {color}]\n\n{status.user_message}",
            title="🔐 메일 데이터 접근",
        ))
        if not status.is_accessible:
            raise typer.Exit(1)

    run_async(_check, needs_database=False)


@app.command("native-discover")
def native_discover():
    """네이티브 메일 계정을 탐색합니다."""

    async def _discover(factory):
        accounts = await factory.create_native_store().discover_accounts()

        table = Table(title=f"네이티브 메일 계정 ({len(accounts)}개)")
        table.add_column("ID", style="cyan")
        table.add_column("이메일", style="green")
        table.add_column("이름", style="white")
        table.add_column("관리형 클라우드", style="yellow")

        for account in accounts:
            table.add_row(
                account.id,
                account.email,
                account.display_name,
                "예" if account.is_managed_cloud else "아니오",
            )

        console.print(table)

    run_async(_discover, needs_database=False)


@app.command("native-import")
def native_import(
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="가져온 서명을 JSON으로 저장할 디렉터리"),
):
    """네이티브 메일의 기존 서명을 가져옵니다."""

    async def _import(factory):
        imported = await factory.create_native_store().import_signatures()

        if not imported:
            console.print("[yellow]가져올 서명이 없습니다.[/yellow]")
            return

        table = Table(title=f"가져온 서명 ({len(imported)}개)")
        table.add_column("ID", style="cyan")
        table.add_column("이름", style="green")
        table.add_column("할당 계정", style="white")
        table.add_column("크기", style="yellow")

        for item in imported:
            table.add_row(item.id, item.name, ", ".join(item.account_ids) or "-", f"{len(item.html)}자")

        console.print(table)

        if output is not None:
            output.mkdir(parents=True, exist_ok=True)
            for item in imported:
                signature = CanonicalSignature(
                    id=item.id,
                    name=item.name,
                    html=item.html,
                    bindings=[
                        AccountBinding(store_kind=StoreKind.NATIVE, account_identifier=account_id)
                        for account_id in item.account_ids
                    ],
                )
                save_json(output / f"{item.id}.json", signature.model_dump(mode="json"))
            console.print(f"[green]✓ {len(imported)}개 서명을 저장했습니다: {output}[/green]")

    run_async(_import, needs_database=False)


@app.command("remote-identities")
def remote_identities(
    email: str = typer.Option(..., "--email", "-e", help="인증된 웹메일 계정 이메일"),
):
    """웹메일 계정의 발신 아이덴티티(별칭 포함)를 조회합니다."""

    async def _identities(factory):
        identities = await factory.create_remote_store().list_identities(email)

        table = Table(title=f"발신 아이덴티티: {email}")
        table.add_column("이메일", style="cyan")
        table.add_column("표시 이름", style="white")
        table.add_column("기본", style="green")
        table.add_column("별칭", style="yellow")

        for identity in identities:
            table.add_row(
                identity.email,
                identity.display_name or "-",
                "✓" if identity.is_primary else "",
                ", ".join(identity.aliases) or "-",
            )

        console.print(table)

    run_async(_identities)
