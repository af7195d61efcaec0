"""Cloud image download - fetch a resolved template's image to local disk."""

import logging
import tempfile
from pathlib import Path

import httpx
from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TransferSpeedColumn,
)

from pvetmpl.config import ResolverConfig, get_download_dir, load_config
from pvetmpl.errors import DownloadError
from pvetmpl.families import ResolvedTemplate

logger = logging.getLogger(__name__)

console = Console(stderr=True)

# Cloud images are hundreds of MB, reads can stall for a while on slow mirrors
DOWNLOAD_TIMEOUT = 300.0


def is_image_present(path: Path) -> bool:
    """Check if a non-empty image file exists."""
    return path.is_file() and path.stat().st_size > 0


def download_image(
    resolved: ResolvedTemplate,
    dest_dir: Path | None = None,
    force: bool = False,
    config: ResolverConfig | None = None,
    transport: httpx.BaseTransport | None = None,
) -> Path:
    """
    Download the cloud image of a resolved template.

    The image is streamed to a temporary file in ``dest_dir`` and renamed to
    ``resolved.local_filename`` once complete, so an interrupted download
    never leaves a truncated image behind.
    """
    config = config or load_config()
    dest_dir = Path(dest_dir) if dest_dir else get_download_dir()
    dest_dir.mkdir(parents=True, exist_ok=True)
    target = dest_dir / resolved.local_filename

    if is_image_present(target) and not force:
        console.print(
            f"[yellow]{target.name} already exists. Use --force to re-download.[/yellow]"
        )
        return target

    tmp_path: Path | None = None
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task(f"Downloading {target.name}...", total=None)
        try:
            with tempfile.NamedTemporaryFile(
                dir=dest_dir, prefix=f".{target.name}.", suffix=".part", delete=False
            ) as tmp:
                tmp_path = Path(tmp.name)

            logger.info("Downloading %s to %s", resolved.cloud_image_url, target)
            with httpx.Client(
                follow_redirects=True,
                timeout=httpx.Timeout(DOWNLOAD_TIMEOUT, connect=config.timeout),
                headers={"User-Agent": config.user_agent},
                transport=transport,
            ) as client:
                with client.stream("GET", resolved.cloud_image_url) as response:
                    response.raise_for_status()
                    total = int(response.headers.get("content-length", 0))
                    progress.update(task, total=total or None)

                    with open(tmp_path, "wb") as f:
                        for chunk in response.iter_bytes(chunk_size=65536):
                            f.write(chunk)
                            progress.update(task, advance=len(chunk))

            if not is_image_present(tmp_path):
                raise DownloadError(
                    f"Downloading cloud image {resolved.cloud_image_url} failed: empty file"
                )

            tmp_path.replace(target)
            tmp_path = None
            progress.update(task, description=f"[green]Downloaded {target.name}[/green]")

        except httpx.HTTPError as e:
            raise DownloadError(
                f"Failed to download {resolved.cloud_image_url}: {e}"
            ) from e
        finally:
            if tmp_path:
                tmp_path.unlink(missing_ok=True)

    return target


def remove_image(resolved: ResolvedTemplate, dest_dir: Path | None = None) -> bool:
    """Remove a downloaded image."""
    dest_dir = Path(dest_dir) if dest_dir else get_download_dir()
    target = dest_dir / resolved.local_filename
    if target.exists():
        target.unlink()
        return True
    return False
