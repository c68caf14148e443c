"""
CLI 공통 유틸리티

명령어마다 반복되는 팩토리 준비, 데이터베이스 초기화, 오류 출력을 모아둡니다.
"""

import asyncio
import json
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel

from core.domain.entities import CanonicalSignature
from core.domain.errors import SyncError
from adapters.factory import AdapterFactory, get_adapter_factory

console = Console()

T = TypeVar("T")


def print_sync_error(error: SyncError) -> None:
    """동기화 오류와 조치 안내를 출력합니다."""
    body = f"[bold red]{error}[/bold red]"
    if error.remediation:
        body += f"\n\n[yellow]조치:[/yellow] {error.remediation}"
    console.print(Panel.fit(body, title=f"❌ {error.kind.value}"))


def run_async(
    operation: Callable[[AdapterFactory], Awaitable[T]],
    needs_database: bool = True,
) -> T:
    """팩토리를 준비하고 비동기 작업을 실행합니다. 실패 시 종료 코드 1로 끝납니다."""

    async def _run() -> T:
        factory = get_adapter_factory()
        try:
            if needs_database:
                await factory.initialize_database()
            return await operation(factory)
        finally:
            await factory.close()

    try:
        return asyncio.run(_run())
    except typer.Exit:
        raise
    except SyncError as e:
        print_sync_error(e)
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]오류: {str(e)}[/red]")
        raise typer.Exit(1)


def load_signature(path: Path) -> CanonicalSignature:
    """JSON 파일에서 정규 서명을 읽습니다. 읽을 수 없으면 종료 코드 1로 끝납니다."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return CanonicalSignature.model_validate(data)
    except FileNotFoundError:
        console.print(f"[red]오류: 서명 파일을 찾을 수 없습니다: {path}[/red]")
    except json.JSONDecodeError as e:
        console.print(f"[red]오류: 서명 파일이 올바른 JSON이 아닙니다: {path} ({e})[/red]")
    except ValidationError as e:
        console.print(f"[red]오류: 서명 파일 형식이 올바르지 않습니다: {path}[/red]\n{e}")
    raise typer.Exit(1)


def save_json(path: Path, data) -> None:
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
