from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from zyora.clients.api import TryOnApiClient
from zyora.clients.identity import IdentityProvider, build_identity_provider
from zyora.config import AppConfig, load_config
from zyora.errors import IdentityError, ImageValidationError, QuotaExceededError
from zyora.logging_config import configure_logging
from zyora.storage import JSONFileKeyValueStore, StorageAdapters
from zyora.store import AppStore
from zyora.tasks.studio import StudioWorkflow
from zyora.types import ImageKind


def _as_path(value: str) -> Path:
    path = Path(value).expanduser()
    if not path.exists():
        raise argparse.ArgumentTypeError(f"Path not found: {path}")
    return path


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Try a garment on a photo using the Zyora backend and keep the result."
    )
    parser.add_argument("--user", required=True, type=_as_path, help="Photo of the person.")
    garment = parser.add_mutually_exclusive_group(required=True)
    garment.add_argument("--fit", type=_as_path, help="Garment image file.")
    garment.add_argument("--fit-url", type=str, help="Garment image URL, fetched through the backend.")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("output") / "looks",
        help="Directory the generated PNG is written to.",
    )
    parser.add_argument(
        "--dotenv",
        type=Path,
        default=None,
        help="Optional path to a .env file with Zyora settings.",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Sign in as the developer user when no session is stored, or when Google sign-in fails.",
    )
    parser.add_argument(
        "--google-token",
        type=str,
        default=None,
        help="Google OAuth access token; requires ENABLE_GOOGLE_AUTH and GOOGLE_WEB_CLIENT_ID.",
    )
    return parser.parse_args()


async def _sign_in(store: AppStore, args: argparse.Namespace, config: AppConfig, console: Console) -> bool:
    """Try Google first when a token is given, then fall back to the developer account."""
    if args.google_token:
        if not config.enable_google_auth:
            console.print("[yellow]Google sign-in is disabled;[/yellow] set ENABLE_GOOGLE_AUTH to use --google-token.")
        else:
            try:
                await store.sign_in_with_provider(args.google_token)
                return True
            except IdentityError as exc:
                console.print(f"[yellow]Google sign-in failed:[/yellow] {exc}")

    if not args.dev:
        console.print("[red]Not signed in.[/red] Re-run with --google-token or --dev.")
        return False
    store.sign_in_as_developer()
    return True


async def run(args: argparse.Namespace, console: Console) -> int:
    config = load_config(args.dotenv)
    identity = build_identity_provider(config)
    try:
        return await _run_session(args, config, identity, console)
    finally:
        await identity.aclose()


async def _run_session(
    args: argparse.Namespace,
    config: AppConfig,
    identity: IdentityProvider,
    console: Console,
) -> int:
    storage = StorageAdapters.from_store(
        JSONFileKeyValueStore(config.storage.path),
        max_looks=config.storage.max_saved_looks,
    )
    store = AppStore(
        storage,
        identity,
        max_quota=config.max_free_quota,
        max_saved_looks=config.storage.max_saved_looks,
    )
    await store.load_from_storage()

    if store.state.user is None and not await _sign_in(store, args, config, console):
        return 1

    user = store.state.user
    console.print(f"Signed in as [bold]{user.display_name or user.uid}[/bold] ({user.quota}/{user.max_quota} used)")

    async with TryOnApiClient(config.api) as client:
        workflow = StudioWorkflow(store, client, max_image_size_mb=config.max_image_size_mb)
        try:
            workflow.stage_image_file(args.user, ImageKind.USER)
            if args.fit:
                workflow.stage_image_file(args.fit, ImageKind.FIT)
            elif not await workflow.stage_fit_from_url(args.fit_url):
                console.print("[red]Failed to load image from URL[/red]")
                return 1
        except (ImageValidationError, ValueError) as exc:
            console.print(f"[red]{exc}[/red]")
            return 1

        with Progress(
            SpinnerColumn(),
            TextColumn("[bold]Generating look[/bold]"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("generate", total=None)
            try:
                result = await workflow.generate()
            except QuotaExceededError as exc:
                console.print(f"[yellow]Quota reached:[/yellow] {exc}")
                return 1

    if not result.success or not result.image:
        await store.flush()
        console.print(f"[red]Generation failed:[/red] {result.error}")
        return 1

    path = workflow.save_result(result.image, args.output_dir)
    await store.flush()
    console.print(f"[green]Look saved to[/green] {path}")
    return 0


def main() -> None:
    args = parse_args()
    console = Console()
    configure_logging(console=console)
    raise SystemExit(asyncio.run(run(args, console)))


if __name__ == "__main__":
    main()
