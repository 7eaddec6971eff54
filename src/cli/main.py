"""CLI de vvm3-provisioner (Typer + Rich).

Comandos:
- `subscribe`: intento completo contra un VMG real; el STATUS SMS se pega
  cuando se pide (o se lee de `--status-file`).
- `gateway`: solo resuelve la URL del SPG.
- `find-link`: busca el enlace de suscripción en una página guardada.
- `configure`: guarda timeouts en el .env del usuario.
"""

from __future__ import annotations

import asyncio
import contextlib
import threading
import time
from pathlib import Path

import typer
from rich.console import Console

from adapters.confirmation_channel import InMemoryConfirmationChannel
from adapters.gateway_client import GatewayClient
from adapters.html_links import BASIC_SUBSCRIBE_LINK_TEXT, find_link_by_text
from adapters.http_client import build_async_client
from adapters.status_sms import parse_status_sms
from cli.ui_components import build_result_table, print_banner
from core.config import AppSettings, write_user_env_vars
from core.domain.events import VvmEvent
from core.domain.models import NetworkContext
from core.errors import ProvisioningError
from core.observability import configure_logging, get_logger
from core.services.subscription import SubscriptionHooks, SubscriptionOrchestrator, SubscriptionResult

app = typer.Typer(no_args_is_help=True, help="Basic visual voicemail (VVM3) self-provisioning.")

_console = Console()
logger = get_logger(__name__)

_STATUS_POLL_SECONDS = 0.5
_STATUS_PROMPT = "Paste the STATUS SMS received on the device: "


def _setup(settings: AppSettings, *, quiet: bool) -> None:
    configure_logging(level=settings.log_level, json_output=settings.log_json)
    if not quiet:
        print_banner(_console)


async def _wait_for_listener(channel: InMemoryConfirmationChannel, subscriber_number: str) -> None:
    while channel.listener_count(subscriber_number) == 0:
        await asyncio.sleep(_STATUS_POLL_SECONDS)


def _read_status_file(path: Path, started_at: float) -> tuple[float, str] | None:
    if not path.exists():
        return None
    mtime = path.stat().st_mtime
    if mtime < started_at:
        return None
    return mtime, path.read_text(encoding="utf-8").strip()


async def _watch_status_file(
    path: Path,
    channel: InMemoryConfirmationChannel,
    subscriber_number: str,
    started_at: float,
) -> None:
    """Publica el STATUS SMS escrito en `path` cuando hay una escucha abierta.

    Solo cuenta un fichero modificado después de `started_at`. Un contenido
    inválido se registra y se sigue esperando a que el fichero cambie.
    """

    rejected: tuple[float, str] | None = None
    while True:
        await _wait_for_listener(channel, subscriber_number)
        snapshot = await asyncio.to_thread(_read_status_file, path, started_at)
        if snapshot is None or not snapshot[1] or snapshot == rejected:
            await asyncio.sleep(_STATUS_POLL_SECONDS)
            continue
        try:
            payload = parse_status_sms(snapshot[1])
        except ValueError as exc:
            logger.warning("status_file_invalid", path=str(path), error=str(exc))
            rejected = snapshot
            continue
        channel.publish(subscriber_number, payload)
        return


async def _read_line(prompt: str) -> str | None:
    """Lee una línea de stdin fuera del event loop. `None` en EOF.

    El hilo es daemon: si el intento termina antes, la lectura pendiente no
    retiene el proceso.
    """

    loop = asyncio.get_running_loop()
    future: asyncio.Future[str | None] = loop.create_future()

    def _resolve(value: str | None) -> None:
        if not future.done():
            future.set_result(value)

    def _worker() -> None:
        try:
            line: str | None = _console.input(prompt)
        except EOFError:
            line = None
        if not loop.is_closed():
            loop.call_soon_threadsafe(_resolve, line)

    threading.Thread(target=_worker, name="status-sms-prompt", daemon=True).start()
    return await future


async def _prompt_status_sms(channel: InMemoryConfirmationChannel, subscriber_number: str) -> None:
    """Pide al operador el STATUS SMS una vez pulsado el enlace."""

    await _wait_for_listener(channel, subscriber_number)
    while True:
        text = await _read_line(_STATUS_PROMPT)
        if text is None:
            logger.warning("status_prompt_closed")
            return
        if not text.strip():
            continue
        try:
            payload = parse_status_sms(text)
        except ValueError as exc:
            _console.print(f"[yellow]Not a STATUS SMS:[/yellow] {exc}")
            continue
        channel.publish(subscriber_number, payload)
        return


async def _run_subscription(
    *,
    settings: AppSettings,
    vmg_url: str | None,
    number: str,
    device_model: str | None,
    network: NetworkContext,
    status_file: Path | None,
) -> SubscriptionResult:
    channel = InMemoryConfirmationChannel()

    def on_event(event: VvmEvent) -> None:
        _console.print(f"[yellow]event:[/yellow] {event.label()}")

    hooks = SubscriptionHooks(
        on_event=on_event,
        commit_subscriber_state=lambda payload: _console.print(
            f"[green]Subscriber ready[/green] ({payload.provisioning_status})"
        ),
        continue_provisioning=lambda payload: _console.print(
            "[green]Subscriber is new:[/green] continue with full provisioning"
        ),
        abort_activation=lambda: _console.print("[red]Activation aborted[/red]"),
    )
    orchestrator = SubscriptionOrchestrator(
        subscriber_number=number,
        config={"vmg_url": vmg_url},
        confirmations=channel,
        network=network,
        hooks=hooks,
        settings=settings,
        device_model=device_model,
    )

    if status_file is not None:
        feeder = _watch_status_file(status_file, channel, number, time.time())
    else:
        feeder = _prompt_status_sms(channel, number)
    feeder_task = asyncio.create_task(feeder)
    try:
        return await orchestrator.subscribe()
    finally:
        feeder_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await feeder_task


@app.command()
def subscribe(
    vmg_url: str = typer.Option(None, "--vmg-url", help="Voicemail management gateway URL (from the STATUS SMS)."),
    number: str = typer.Option(..., "--number", help="Subscriber MDN."),
    device_model: str = typer.Option(None, "--device-model", help="Value sent as <devicemodel>."),
    local_address: str = typer.Option(None, "--local-address", help="Source IP to bind (cellular interface)."),
    status_file: Path = typer.Option(
        None,
        "--status-file",
        help="Read the STATUS SMS from this file instead of prompting for it.",
    ),
    quiet: bool = typer.Option(False, "--quiet", help="Hide the banner."),
) -> None:
    """Run a full subscription attempt."""

    settings = AppSettings()
    _setup(settings, quiet=quiet)

    network = NetworkContext(local_address=local_address, label=local_address or "default")
    result = asyncio.run(
        _run_subscription(
            settings=settings,
            vmg_url=vmg_url,
            number=number,
            device_model=device_model,
            network=network,
            status_file=status_file,
        )
    )

    _console.print(build_result_table(result))
    if not result.succeeded:
        raise typer.Exit(code=1)


async def _resolve(settings: AppSettings, vmg_url: str, number: str, device_model: str) -> str:
    async with build_async_client(settings) as client:
        gateway = GatewayClient(client, settings)
        return await gateway.resolve_gateway(vmg_url, number, device_model)


@app.command()
def gateway(
    vmg_url: str = typer.Option(..., "--vmg-url"),
    number: str = typer.Option(..., "--number"),
    device_model: str = typer.Option(None, "--device-model"),
) -> None:
    """Resolve only the self-provisioning gateway URL."""

    settings = AppSettings()
    _setup(settings, quiet=True)
    try:
        spg_url = asyncio.run(_resolve(settings, vmg_url, number, device_model or settings.device_model))
    except ProvisioningError as exc:
        _console.print(f"[red]{exc.kind.value}[/red] {exc.message}")
        raise typer.Exit(code=1) from exc
    _console.print(spg_url)


@app.command(name="find-link")
def find_link(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True),
    label: str = typer.Option(BASIC_SUBSCRIBE_LINK_TEXT, "--label"),
) -> None:
    """Find the subscribe link in a saved SPG page."""

    html = path.read_text(encoding="utf-8", errors="replace")
    try:
        link = find_link_by_text(html, label)
    except ProvisioningError as exc:
        _console.print(f"[red]{exc.kind.value}[/red] {exc.message}")
        raise typer.Exit(code=1) from exc
    _console.print(link)


@app.command()
def configure(
    request_timeout: float = typer.Option(None, "--request-timeout", min=0.1),
    confirmation_timeout: float = typer.Option(None, "--confirmation-timeout", min=0.1),
    device_model: str = typer.Option(None, "--device-model"),
) -> None:
    """Store defaults in the user config .env."""

    values = {
        "VVM3_REQUEST_TIMEOUT_SECONDS": None if request_timeout is None else str(request_timeout),
        "VVM3_CONFIRMATION_TIMEOUT_SECONDS": None if confirmation_timeout is None else str(confirmation_timeout),
        "VVM3_DEVICE_MODEL": device_model,
    }
    if all(value is None for value in values.values()):
        raise typer.BadParameter("nothing to configure")

    env_path = write_user_env_vars(values)
    _console.print(f"[green]Saved config to:[/green] {env_path}")


def run() -> None:
    app()
