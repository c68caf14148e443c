"""
동기화 CLI 명령어

정규 서명(JSON 파일)을 바인딩된 계정들로 배포하고 원장과 현재 상태를 조회합니다.
"""

import asyncio
import signal
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from core.domain.entities import SyncEvent, SyncPhase
from core.usecases.sync_coordinator import SyncOptions
from adapters.cli.common import console, load_signature, run_async, save_json

app = typer.Typer(name="sync", help="서명 동기화 명령어")

PHASE_STYLES = {
    SyncPhase.RECORDED: "green",
    SyncPhase.CONFLICT_PENDING: "yellow",
    SyncPhase.BLOCKED: "magenta",
    SyncPhase.FAILED: "red",
    SyncPhase.SKIPPED: "dim",
}


def _print_event(event: SyncEvent) -> None:
    detail = f" - {event.detail}" if event.detail else ""
    console.print(f"[dim]{event.binding_key}[/dim] → {event.phase.value}{detail}")


@app.command("dispatch")
def dispatch(
    signature_file: Path = typer.Argument(..., help="정규 서명 JSON 파일"),
    force: bool = typer.Option(False, "--force", help="충돌을 무시하고 덮어쓰기"),
    allow_embedded_images: bool = typer.Option(
        False, "--allow-embedded-images", help="웹메일 대상에서는 내장 이미지를 제거하고 전송"
    ),
    record_conflicts: bool = typer.Option(False, "--record-conflicts", help="충돌을 원장에 표시"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="동기화 시간이 갱신된 서명을 저장할 파일"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="단계별 진행 상황 출력"),
):
    """정규 서명을 모든 바인딩으로 배포합니다."""
    signature = load_signature(signature_file)
    options = SyncOptions(
        force=force,
        allow_embedded_images=allow_embedded_images,
        record_conflicts=record_conflicts,
    )

    async def _dispatch(factory):
        coordinator = factory.create_sync_coordinator()

        # Ctrl+C는 아직 시작하지 않은 바인딩만 건너뜀
        cancel_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
        try:
            report = await coordinator.dispatch(
                signature,
                options=options,
                cancel_event=cancel_event,
                on_event=_print_event if verbose else None,
            )
        finally:
            loop.remove_signal_handler(signal.SIGINT)

        table = Table(title=f"📤 서명 배포 결과: {signature.name}")
        table.add_column("바인딩", style="cyan")
        table.add_column("결과", style="white")
        table.add_column("메시지", style="white")
        table.add_column("조치", style="yellow")

        for outcome in report.outcomes:
            style = PHASE_STYLES.get(outcome.phase, "white")
            notes = list(outcome.warnings)
            notes.extend(finding.message for finding in outcome.advisories)
            message = outcome.message or ""
            if notes:
                message = "\n".join([message, *notes]).strip()
            table.add_row(
                outcome.binding_key,
                f"[{style}]{outcome.phase.value}[/{style}]",
                message or "-",
                outcome.remediation or "-",
            )

        console.print(table)
        console.print(f"요약: {report.count_by_phase()}")

        if any(outcome.restart_required for outcome in report.outcomes):
            console.print("[yellow]메일 앱이 실행 중입니다. 변경 사항을 보려면 재시작하세요.[/yellow]")

        if output is not None:
            updated = signature.model_copy(update={"bindings": report.bindings})
            save_json(output, updated.model_dump(mode="json"))
            console.print(f"[green]✓ 갱신된 서명을 저장했습니다: {output}[/green]")

        if not all(outcome.succeeded for outcome in report.outcomes):
            raise typer.Exit(1)

    run_async(_dispatch)


@app.command("ledger")
def show_ledger(
    clear_conflict: Optional[str] = typer.Option(
        None, "--clear-conflict", help="충돌 표시를 해제할 바인딩 키"
    ),
):
    """동기화 원장을 조회합니다."""

    async def _ledger(factory):
        ledger = factory.create_sync_ledger()
        await ledger.load()

        if clear_conflict:
            entry = await ledger.clear_conflict(clear_conflict)
            if entry is None:
                console.print(f"[red]원장 항목을 찾을 수 없습니다: {clear_conflict}[/red]")
                raise typer.Exit(1)
            console.print(f"[green]충돌 표시를 해제했습니다: {clear_conflict}[/green]")

        entries = ledger.entries()
        if not entries:
            console.print("[yellow]원장이 비어있습니다.[/yellow]")
            return

        table = Table(title="📒 동기화 원장")
        table.add_column("바인딩", style="cyan")
        table.add_column("마지막 동기화", style="white")
        table.add_column("해시", style="white")
        table.add_column("충돌", style="yellow")

        for entry in entries:
            table.add_row(
                entry.key,
                entry.last_sync_time.isoformat() if entry.last_sync_time else "-",
                (entry.last_hash or "-")[:12],
                entry.conflict_detail or ("예" if entry.has_conflict else ""),
            )

        console.print(table)

    run_async(_ledger)


@app.command("state")
def show_state(
    signature_file: Path = typer.Argument(..., help="정규 서명 JSON 파일"),
):
    """바인딩별 현재 저장소 상태를 원장과 비교합니다."""
    signature = load_signature(signature_file)

    async def _state(factory):
        ledger = factory.create_sync_ledger()
        await ledger.load()
        stores = {
            store.store_kind: store
            for store in (factory.create_native_store(), factory.create_remote_store())
        }

        table = Table(title=f"🔍 저장소 상태: {signature.name}")
        table.add_column("바인딩", style="cyan")
        table.add_column("저장소 상태", style="white")
        table.add_column("원장 대비", style="white")
        table.add_column("수정 시간", style="white")

        for binding in signature.bindings:
            state = await stores[binding.store_kind].read_binding_state(binding, signature)
            entry = ledger.get(binding.key)

            if not state.present:
                presence = "[dim]없음[/dim]"
            elif state.content_hash == signature.content_hash:
                presence = "[green]정규 서명과 일치[/green]"
            else:
                presence = "[yellow]정규 서명과 다름[/yellow]"

            if entry is None or entry.last_hash is None:
                versus = "미기록"
            elif entry.last_hash == state.content_hash:
                versus = "[green]변경 없음[/green]"
            else:
                versus = "[red]외부에서 변경됨[/red]"

            table.add_row(
                binding.key,
                presence,
                versus,
                state.modified_at.isoformat() if state.modified_at else "-",
            )

        console.print(table)

    run_async(_state)
