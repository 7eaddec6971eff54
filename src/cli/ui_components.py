"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.services.subscription import SubscriptionResult


def print_banner(console: Console) -> None:
    title = Text("VVM3 Provisioner", style="bold cyan")
    subtitle = Text("Basic Visual Voicemail • Self-provisioning", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_result_table(result: SubscriptionResult) -> Table:
    """Tabla resumen de un intento de suscripción."""

    table = Table(title="Subscription attempt")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    state_style = "green" if result.succeeded else "red"
    table.add_row("State", Text(result.state.value, style=state_style))
    table.add_row("SPG URL", result.gateway_address or "-")
    table.add_row("Subscribe link", result.subscribe_link or "-")

    if result.outcome is not None:
        table.add_row("Outcome", result.outcome.kind.value)
        table.add_row("Provisioning status", result.outcome.payload.provisioning_status)
    if result.failure is not None:
        table.add_row("Failure", Text(result.failure.kind.value, style="red"))
        table.add_row("Details", Text(result.failure.message, style="dim"))
    if result.events:
        table.add_row("Events", ", ".join(event.label() for event in result.events))
    return table
