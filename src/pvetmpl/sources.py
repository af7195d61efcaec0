"""HTTP access to the vendor release listings."""

import logging

import httpx

from pvetmpl.config import ResolverConfig
from pvetmpl.families import DistributionFamily

logger = logging.getLogger(__name__)

# Release listing pages, one per family
LISTING_URLS: dict[DistributionFamily, str] = {
    DistributionFamily.UBUNTU: "https://cloud-images.ubuntu.com/",
    DistributionFamily.ALMALINUX: "https://wiki.almalinux.org/cloud/",
    DistributionFamily.ROCKY: "https://dl.rockylinux.org/pub/rocky/",
    DistributionFamily.ORACLE: "https://yum.oracle.com/oracle-linux-templates.html",
    DistributionFamily.CENTOS_STREAM: "https://cloud.centos.org/centos/",
}

ALMALINUX_REPO = "https://repo.almalinux.org/almalinux"
ROCKY_MIRROR = "https://dl.rockylinux.org/pub/rocky"
ORACLE_YUM = "https://yum.oracle.com"
CENTOS_CLOUD = "https://cloud.centos.org/centos"
UBUNTU_CLOUD_IMAGES = "https://cloud-images.ubuntu.com"


def create_client(config: ResolverConfig, **kwargs) -> httpx.Client:
    """Create the HTTP client shared by one discovery pass."""
    return httpx.Client(
        follow_redirects=True,
        timeout=config.timeout,
        headers={"User-Agent": config.user_agent},
        **kwargs,
    )


def _is_transient(error: httpx.HTTPError) -> bool:
    if isinstance(error, httpx.TransportError):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return False


def fetch(client: httpx.Client, url: str, retries: int = 1) -> httpx.Response:
    """GET a URL, retrying transient failures up to ``retries`` times."""
    attempt = 0
    while True:
        attempt += 1
        logger.debug("GET %s (attempt %d)", url, attempt)
        try:
            response = client.get(url)
            response.raise_for_status()
            return response
        except httpx.HTTPError as e:
            if attempt > retries or not _is_transient(e):
                raise
            logger.debug("Transient failure fetching %s: %s, retrying", url, e)


def fetch_text(client: httpx.Client, url: str, retries: int = 1) -> str:
    """Fetch a document as text."""
    return fetch(client, url, retries).text


def fetch_json(client: httpx.Client, url: str, retries: int = 1):
    """Fetch and decode a JSON document.

    Raises ValueError when the body is not valid JSON.
    """
    return fetch(client, url, retries).json()
