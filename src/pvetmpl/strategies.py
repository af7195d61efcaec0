"""Per-family discovery and derivation strategies."""

import logging
from concurrent.futures import ThreadPoolExecutor

import httpx

from pvetmpl import parsers
from pvetmpl.errors import DiscoveryError, MalformedReleaseError, UnsupportedFamilyError
from pvetmpl.families import (
    DistributionFamily,
    ReleaseCandidate,
    ResolvedTemplate,
    check_release,
    make_point_release,
    version_key,
)
from pvetmpl.sources import (
    ALMALINUX_REPO,
    CENTOS_CLOUD,
    LISTING_URLS,
    ORACLE_YUM,
    ROCKY_MIRROR,
    UBUNTU_CLOUD_IMAGES,
    fetch_json,
    fetch_text,
)

logger = logging.getLogger(__name__)


class FamilyStrategy:
    """Discovery and derivation rules for one distribution family."""

    family: DistributionFamily
    # Whether derive_params needs an HTTP client
    needs_network = False

    @property
    def listing_url(self) -> str:
        return LISTING_URLS[self.family]

    def _get_text(self, client: httpx.Client, url: str, retries: int) -> str:
        try:
            return fetch_text(client, url, retries)
        except httpx.HTTPError as e:
            raise DiscoveryError(self.family, e) from e

    def _get_json(self, client: httpx.Client, url: str, retries: int):
        try:
            return fetch_json(client, url, retries)
        except httpx.HTTPError as e:
            raise DiscoveryError(self.family, e) from e
        except ValueError as e:
            raise DiscoveryError(self.family, f"invalid JSON at {url}: {e}") from e

    def list_releases(
        self, client: httpx.Client, limit: int, retries: int = 1
    ) -> list[ReleaseCandidate]:
        """Return the candidates published by this family (unordered)."""
        raise NotImplementedError

    def derive_params(
        self,
        release: ReleaseCandidate,
        client: httpx.Client | None = None,
        retries: int = 1,
    ) -> ResolvedTemplate:
        """Compute the image URL, filename and template name for a release."""
        raise NotImplementedError

    def _template(self, url: str, filename: str, name: str) -> ResolvedTemplate:
        return ResolvedTemplate(
            cloud_image_url=url,
            local_filename=filename,
            default_template_name=name,
            family=self.family,
        )


class UbuntuStrategy(FamilyStrategy):
    family = DistributionFamily.UBUNTU

    def list_releases(self, client, limit, retries=1):
        return parsers.parse_ubuntu_index(
            self._get_text(client, self.listing_url, retries)
        )

    def derive_params(self, release, client=None, retries=1):
        check_release(self.family, release)
        short = release.short_code_name
        filename = f"{short}-server-cloudimg-amd64.img"
        return self._template(
            f"{UBUNTU_CLOUD_IMAGES}/{short}/current/{filename}",
            filename,
            f"ubuntu-{release.version}-{short}",
        )


class AlmaLinuxStrategy(FamilyStrategy):
    family = DistributionFamily.ALMALINUX

    def list_releases(self, client, limit, retries=1):
        majors = parsers.parse_almalinux_majors(
            self._get_text(client, self.listing_url, retries)
        )
        # The wiki only names majors, the point release comes from the image directory.
        # A newly announced major may have no image yet, so keep walking down.
        candidates = []
        failures = []
        for major in sorted(majors, key=version_key, reverse=True):
            if len(candidates) >= limit:
                break
            try:
                listing = self._get_text(
                    client, f"{ALMALINUX_REPO}/{major}/cloud/x86_64/images/", retries
                )
            except DiscoveryError as e:
                logger.warning("Skipping AlmaLinux %s: %s", major, e.cause)
                failures.append(e)
                continue
            point = parsers.parse_almalinux_point_release(listing, major)
            if point is None:
                logger.warning("No GenericCloud image found for AlmaLinux %s", major)
                continue
            candidates.append(make_point_release(self.family, point))

        # Every image directory unreachable is a family failure, not an empty listing
        if failures and not candidates:
            raise failures[0]
        return candidates

    def derive_params(self, release, client=None, retries=1):
        check_release(self.family, release)
        major = release.major
        filename = f"AlmaLinux-{major}-GenericCloud-latest.x86_64.qcow2"
        return self._template(
            f"{ALMALINUX_REPO}/{major}/cloud/x86_64/images/{filename}",
            filename,
            f"almalinux-{release.version}",
        )


class RockyStrategy(FamilyStrategy):
    family = DistributionFamily.ROCKY

    def list_releases(self, client, limit, retries=1):
        return parsers.parse_rocky_listing(
            self._get_text(client, self.listing_url, retries)
        )

    def derive_params(self, release, client=None, retries=1):
        check_release(self.family, release)
        major = release.major
        filename = f"Rocky-{major}-GenericCloud-Base.latest.x86_64.qcow2"
        return self._template(
            f"{ROCKY_MIRROR}/{major}/images/x86_64/{filename}",
            filename,
            f"rockylinux-{release.version}",
        )


class OracleStrategy(FamilyStrategy):
    """Oracle Linux publishes one JSON descriptor per major version.

    The templates page is rendered from those descriptors, so discovery reads
    the descriptor paths from the page and then each descriptor's version and
    release. Derivation needs the descriptor again for the qcow2 filename and
    its base path.
    """

    family = DistributionFamily.ORACLE
    needs_network = True

    def _descriptor_url(self, path: str) -> str:
        return f"{ORACLE_YUM}/{path.lstrip('/')}"

    def list_releases(self, client, limit, retries=1):
        paths = parsers.parse_oracle_descriptor_paths(
            self._get_text(client, self.listing_url, retries)
        )[:limit]
        if not paths:
            return []

        def read(path: str) -> ReleaseCandidate:
            document = self._get_json(client, self._descriptor_url(path), retries)
            try:
                return parsers.parse_oracle_release(document)
            except ValueError as e:
                raise DiscoveryError(self.family, f"{path}: {e}") from e

        with ThreadPoolExecutor(max_workers=len(paths)) as executor:
            return list(executor.map(read, paths))

    def derive_params(self, release, client=None, retries=1):
        check_release(self.family, release)
        if client is None:
            raise ValueError("Oracle Linux derivation needs an HTTP client")

        path = parsers.oracle_descriptor_path(release.major)
        fields = parsers.parse_oracle_descriptor(
            self._get_json(client, self._descriptor_url(path), retries)
        )
        qcow2, base_url = fields["qcow2"], fields["base_url"]
        if not qcow2 or not base_url:
            raise MalformedReleaseError(
                self.family, release, f"descriptor {path} lacks qcow2 or base_url"
            )

        published = f"{fields['version']}.{fields['release']}"
        if published != release.version:
            logger.warning(
                "Oracle Linux %s descriptor now publishes %s; using its image",
                release.version,
                published,
            )

        return self._template(
            f"{ORACLE_YUM}/{base_url.strip('/')}/{qcow2}",
            qcow2,
            f"oraclelinux-{release.version}",
        )


class CentOSStreamStrategy(FamilyStrategy):
    family = DistributionFamily.CENTOS_STREAM

    def list_releases(self, client, limit, retries=1):
        return parsers.parse_centos_listing(
            self._get_text(client, self.listing_url, retries)
        )

    def derive_params(self, release, client=None, retries=1):
        check_release(self.family, release)
        major = release.major
        filename = f"CentOS-Stream-GenericCloud-{major}-latest.x86_64.qcow2"
        return self._template(
            f"{CENTOS_CLOUD}/{major}-stream/x86_64/images/{filename}",
            filename,
            f"centos-{major}-stream",
        )


STRATEGIES: dict[DistributionFamily, FamilyStrategy] = {
    strategy.family: strategy
    for strategy in (
        UbuntuStrategy(),
        AlmaLinuxStrategy(),
        RockyStrategy(),
        OracleStrategy(),
        CentOSStreamStrategy(),
    )
}


def get_strategy(family: DistributionFamily) -> FamilyStrategy:
    """Get the strategy registered for a family."""
    try:
        return STRATEGIES[family]
    except KeyError:
        raise UnsupportedFamilyError(family) from None
