"""Release resolver - discover recent releases and derive template parameters."""

import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from contextlib import contextmanager
from dataclasses import dataclass, field
from functools import partial

import httpx

from pvetmpl.config import ResolverConfig, load_config
from pvetmpl.errors import DiscoveryError, ResolverError
from pvetmpl.families import (
    DistributionFamily,
    ReleaseCandidate,
    ResolvedTemplate,
    get_family,
    list_families,
    version_key,
)
from pvetmpl.parsers import unique
from pvetmpl.sources import create_client
from pvetmpl.strategies import get_strategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscoveryResult:
    """Outcome of discovering one family's releases."""

    family: DistributionFamily
    releases: tuple[ReleaseCandidate, ...] = field(default_factory=tuple)
    error: DiscoveryError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_empty(self) -> bool:
        return self.ok and not self.releases


@contextmanager
def _client_scope(client: httpx.Client | None, config: ResolverConfig):
    """Use the caller's client, or open one for the duration of the block."""
    if client is not None:
        yield client
        return
    with create_client(config) as own:
        yield own


def select_recent(
    candidates: list[ReleaseCandidate], limit: int
) -> list[ReleaseCandidate]:
    """Deduplicate, sort newest first and keep at most ``limit`` candidates."""
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")
    ordered = sorted(unique(candidates), key=lambda c: version_key(c.version), reverse=True)
    return ordered[:limit]


def list_recent_releases(
    family: DistributionFamily | str,
    limit: int = 3,
    *,
    client: httpx.Client | None = None,
    config: ResolverConfig | None = None,
) -> list[ReleaseCandidate]:
    """List the most recent releases of a family, newest first.

    An empty list means the source was reachable but yielded no candidates.
    Raises DiscoveryError when the source can not be fetched or parsed.
    """
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")
    family = get_family(family)
    config = config or load_config()
    strategy = get_strategy(family)

    with _client_scope(client, config) as http:
        candidates = strategy.list_releases(http, limit, config.retries)

    releases = select_recent(candidates, limit)
    if not releases:
        logger.warning("No releases found for %s at %s", family, strategy.listing_url)
    else:
        logger.debug(
            "%s releases: %s", family, ", ".join(r.version for r in releases)
        )
    return releases


def derive_template_params(
    family: DistributionFamily | str,
    release: ReleaseCandidate,
    *,
    client: httpx.Client | None = None,
    config: ResolverConfig | None = None,
) -> ResolvedTemplate:
    """Derive the cloud image URL, filename and template name for a release.

    Raises UnsupportedFamilyError for unknown families and
    MalformedReleaseError when the release does not fit the family.
    """
    family = get_family(family)
    strategy = get_strategy(family)
    config = config or load_config()

    if not strategy.needs_network:
        return strategy.derive_params(release)
    with _client_scope(client, config) as http:
        return strategy.derive_params(release, http, config.retries)


def _report_late(family: DistributionFamily, future: Future) -> None:
    """Log how a worker abandoned at the overall timeout finally ended."""
    if future.cancelled():
        return
    error = future.exception()
    if error is not None:
        logger.debug("Abandoned discovery for %s failed: %s", family, error, exc_info=error)
    else:
        logger.debug("Discovery for %s finished after the overall timeout", family)


def _discover_one(
    family: DistributionFamily, limit: int, client: httpx.Client, config: ResolverConfig
) -> DiscoveryResult:
    try:
        releases = list_recent_releases(family, limit, client=client, config=config)
    except DiscoveryError as e:
        logger.warning("%s", e)
        return DiscoveryResult(family=family, error=e)
    except (ResolverError, ValueError) as e:
        logger.warning("Release discovery failed for %s: %s", family, e)
        return DiscoveryResult(family=family, error=DiscoveryError(family, e))
    return DiscoveryResult(family=family, releases=tuple(releases))


def discover_releases(
    families: list[DistributionFamily | str] | None = None,
    limit: int | None = None,
    *,
    config: ResolverConfig | None = None,
    client: httpx.Client | None = None,
) -> list[DiscoveryResult]:
    """Discover releases for several families concurrently.

    Each family runs in its own worker and fails on its own: the result for a
    failing family carries a DiscoveryError while the others keep their
    releases. Families still pending when ``config.overall_timeout`` expires
    are reported as timed out. Results follow the order of ``families``.

    A worker that is already fetching when the deadline passes can not be
    interrupted. It is abandoned and its outcome is only logged, but it keeps
    its thread until its remaining requests finish, each bounded by
    ``config.timeout`` per attempt. The interpreter waits for such threads
    before exiting.
    """
    config = config or load_config()
    limit = config.limit if limit is None else limit
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")
    selected = [get_family(f) for f in families] if families else list_families()
    selected = list(dict.fromkeys(selected))

    results: dict[DistributionFamily, DiscoveryResult] = {}
    with _client_scope(client, config) as http:
        executor = ThreadPoolExecutor(
            max_workers=min(config.max_workers, len(selected)),
            thread_name_prefix="pvetmpl-discovery",
        )
        try:
            futures = {
                executor.submit(_discover_one, family, limit, http, config): family
                for family in selected
            }
            done, pending = wait(futures, timeout=config.overall_timeout)
            for future in done:
                results[futures[future]] = future.result()
            for future in pending:
                family = futures[future]
                future.cancel()
                future.add_done_callback(partial(_report_late, family))
                error = DiscoveryError(
                    family,
                    TimeoutError(f"no answer within {config.overall_timeout}s"),
                )
                logger.warning("%s", error)
                results[family] = DiscoveryResult(family=family, error=error)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    return [results[family] for family in selected]


def build_menu(results: list[DiscoveryResult]) -> list[ReleaseCandidate]:
    """Flatten discovery results into a selection menu.

    Families keep their order; within a family the oldest retained release
    comes first.
    """
    menu = []
    for result in results:
        menu.extend(sorted(result.releases, key=lambda c: version_key(c.version)))
    return menu
