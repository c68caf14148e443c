"""
데이터베이스 관리 CLI 명령어

원장/자격 증명 데이터베이스의 초기화, 리셋, 상태 조회를 위한 CLI 명령어입니다.
"""

import typer
from rich.table import Table
from sqlalchemy import func, select

from adapters.cli.common import console, run_async
from adapters.db.models import CacheModel, CredentialModel, SyncLedgerModel

# CLI 앱 생성
app = typer.Typer(name="db", help="데이터베이스 관리 명령어")


@app.command("init")
def init_database():
    """데이터베이스를 초기화합니다."""

    async def _init(factory):
        console.print("[blue]데이터베이스 초기화 시작...[/blue]")
        await factory.initialize_database()
        console.print("[green]✓ 데이터베이스 초기화가 완료되었습니다![/green]")

    run_async(_init, needs_database=False)


@app.command("reset")
def reset_database(
    yes: bool = typer.Option(False, "--yes", "-y", help="확인 없이 실행"),
):
    """데이터베이스를 리셋합니다. (원장과 자격 증명 모두 삭제)"""
    if not yes and not typer.confirm("모든 데이터가 삭제됩니다. 계속하시겠습니까?"):
        console.print("[yellow]취소되었습니다.[/yellow]")
        return

    async def _reset(factory):
        console.print("[blue]데이터베이스 리셋 시작...[/blue]")
        database = factory.create_database()
        await database.initialize()
        await database.drop_tables()
        await database.create_tables()
        console.print("[green]✓ 데이터베이스 리셋이 완료되었습니다![/green]")

    run_async(_reset, needs_database=False)


@app.command("info")
def database_info():
    """테이블별 행 수를 조회합니다."""

    async def _info(factory):
        database = factory.create_database()
        console.print(f"[blue]데이터베이스: {factory.get_config().get_database_url()}[/blue]")

        table = Table(title="데이터베이스 상태")
        table.add_column("테이블", style="cyan")
        table.add_column("행 수", style="green")

        async with database.get_session() as session:
            for model in (SyncLedgerModel, CredentialModel, CacheModel):
                result = await session.execute(select(func.count()).select_from(model))
                table.add_row(model.__tablename__, str(result.scalar_one()))

            conflicts = await session.execute(
                select(func.count()).select_from(SyncLedgerModel).where(SyncLedgerModel.has_conflict.is_(True))
            )
            table.add_row("sync_ledger (충돌)", str(conflicts.scalar_one()))

        console.print(table)

    run_async(_info)


if __name__ == "__main__":
    app()
