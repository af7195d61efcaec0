"""Distribution families, release candidates and resolved templates."""

import re
from dataclasses import asdict, dataclass
from enum import Enum

from pvetmpl.errors import MalformedReleaseError, UnsupportedFamilyError


class DistributionFamily(Enum):
    """A Linux distribution line that publishes cloud images."""

    UBUNTU = "ubuntu"
    ALMALINUX = "almalinux"
    ROCKY = "rocky"
    ORACLE = "oracle"
    CENTOS_STREAM = "centos-stream"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    def __str__(self) -> str:
        return self.display_name


_DISPLAY_NAMES: dict[DistributionFamily, str] = {
    DistributionFamily.UBUNTU: "Ubuntu",
    DistributionFamily.ALMALINUX: "AlmaLinux",
    DistributionFamily.ROCKY: "Rocky Linux",
    DistributionFamily.ORACLE: "Oracle Linux",
    DistributionFamily.CENTOS_STREAM: "CentOS Stream",
}

# Extra spellings accepted on the command line, lower-cased
_ALIASES: dict[str, DistributionFamily] = {
    "alma": DistributionFamily.ALMALINUX,
    "almalinux os": DistributionFamily.ALMALINUX,
    "rockylinux": DistributionFamily.ROCKY,
    "rocky-linux": DistributionFamily.ROCKY,
    "ol": DistributionFamily.ORACLE,
    "oraclelinux": DistributionFamily.ORACLE,
    "oracle-linux": DistributionFamily.ORACLE,
    "centos": DistributionFamily.CENTOS_STREAM,
    "centosstream": DistributionFamily.CENTOS_STREAM,
    "centos_stream": DistributionFamily.CENTOS_STREAM,
}

# Prefixes stripped from hand-entered release text, longest first
_LABEL_PREFIXES: dict[DistributionFamily, tuple[str, ...]] = {
    DistributionFamily.UBUNTU: ("ubuntu server", "ubuntu"),
    DistributionFamily.ALMALINUX: ("almalinux os", "almalinux"),
    DistributionFamily.ROCKY: ("rocky linux", "rocky"),
    DistributionFamily.ORACLE: ("oracle linux", "oracle"),
    DistributionFamily.CENTOS_STREAM: ("centos stream", "centos"),
}

_MAJOR_MINOR = re.compile(r"^\d+\.\d+$")
_UBUNTU_VERSION = re.compile(r"^\d+\.\d+(?:\.\d+)?$")
_UBUNTU_TEXT = re.compile(
    r"^(?P<version>\d+\.\d+(?:\.\d+)?)(?:\s+LTS)?"
    r"(?:\s+\(?(?P<code>[A-Za-z]+(?:\s+[A-Za-z]+)?)\)?)?$",
    re.IGNORECASE,
)
_CENTOS_TEXT = re.compile(r"^(?P<major>\d+)(?:-stream)?$", re.IGNORECASE)


def get_family(name: DistributionFamily | str) -> DistributionFamily:
    """Get a family by enum member, value, display name or alias."""
    if isinstance(name, DistributionFamily):
        return name
    if not isinstance(name, str):
        raise UnsupportedFamilyError(name)

    key = name.strip().lower()
    for family in DistributionFamily:
        if key in (family.value, family.display_name.lower(), family.name.lower()):
            return family
    if key in _ALIASES:
        return _ALIASES[key]

    raise UnsupportedFamilyError(name)


def list_families() -> list[DistributionFamily]:
    """List all supported families."""
    return list(DistributionFamily)


def version_key(label: str) -> tuple[int, ...]:
    """Sort key ordering version labels by numeric precedence.

    "9.10" sorts after "9.3", unlike a plain string comparison.
    """
    return tuple(int(part) for part in re.findall(r"\d+", label))


@dataclass(frozen=True)
class ReleaseCandidate:
    """One published release of a family's cloud image line."""

    family: DistributionFamily
    version: str  # e.g. "24.04", "9.5", "10"
    point_release: str | None = None  # e.g. "5" for AlmaLinux 9.5
    code_name: str | None = None  # e.g. "Noble Numbat", Ubuntu only

    @property
    def major(self) -> str:
        return self.version.split(".")[0]

    @property
    def short_code_name(self) -> str:
        """First word of the code name, lower-cased ("noble")."""
        if not self.code_name or not self.code_name.split():
            return ""
        return self.code_name.split()[0].lower()

    @property
    def label(self) -> str:
        """Menu text for this release."""
        if self.family is DistributionFamily.UBUNTU:
            return f"Ubuntu {self.version} LTS {self.code_name or ''}".rstrip()
        if self.family is DistributionFamily.ALMALINUX:
            return f"AlmaLinux OS {self.version}"
        if self.family is DistributionFamily.CENTOS_STREAM:
            return f"CentOS {self.version}-Stream"
        return f"{self.family.display_name} {self.version}"


@dataclass(frozen=True)
class ResolvedTemplate:
    """Build parameters derived for a selected release."""

    cloud_image_url: str
    local_filename: str
    default_template_name: str
    family: DistributionFamily

    def as_dict(self) -> dict[str, str]:
        data = asdict(self)
        data["family"] = self.family.value
        return data


def make_point_release(family: DistributionFamily, version: str) -> ReleaseCandidate:
    """Build a major.minor candidate, recording the minor as point release."""
    return ReleaseCandidate(
        family=family, version=version, point_release=version.split(".")[1]
    )


def check_release(family: DistributionFamily, release: ReleaseCandidate) -> None:
    """Validate a candidate against its family's shape rules.

    Raises MalformedReleaseError on the first violated rule.
    """
    if not isinstance(release, ReleaseCandidate):
        raise MalformedReleaseError(family, release, "not a release candidate")
    if release.family is not family:
        raise MalformedReleaseError(
            family, release, f"belongs to {release.family.display_name}"
        )

    version = release.version or ""
    if family is DistributionFamily.UBUNTU:
        if not _UBUNTU_VERSION.match(version):
            raise MalformedReleaseError(family, release, "version must look like 24.04")
        if not re.fullmatch(r"[a-z]+", release.short_code_name):
            raise MalformedReleaseError(family, release, "missing code name")
    elif family is DistributionFamily.CENTOS_STREAM:
        if not version.isdigit():
            raise MalformedReleaseError(family, release, "version must be a major number")
    else:
        if not _MAJOR_MINOR.match(version):
            raise MalformedReleaseError(
                family, release, "version must be major.minor, e.g. 9.5"
            )
        if release.point_release is not None and release.point_release != version.split(".")[1]:
            raise MalformedReleaseError(
                family, release, "point release does not match version"
            )


def parse_release(family: DistributionFamily | str, text: str) -> ReleaseCandidate:
    """Build a candidate from hand-entered text such as "24.04 Noble Numbat".

    Menu labels are accepted too ("AlmaLinux OS 9.5", "CentOS 10-Stream").
    """
    family = get_family(family)
    cleaned = " ".join(text.split())
    for prefix in _LABEL_PREFIXES[family]:
        if cleaned.lower().startswith(prefix + " "):
            cleaned = cleaned[len(prefix) + 1:]
            break

    if family is DistributionFamily.UBUNTU:
        match = _UBUNTU_TEXT.match(cleaned)
        if not match:
            raise MalformedReleaseError(family, text, "expected e.g. '24.04 Noble Numbat'")
        code = match.group("code")
        release = ReleaseCandidate(
            family=family,
            version=match.group("version"),
            code_name=code.title() if code else None,
        )
    elif family is DistributionFamily.CENTOS_STREAM:
        match = _CENTOS_TEXT.match(cleaned)
        if not match:
            raise MalformedReleaseError(family, text, "expected a major number, e.g. '10'")
        release = ReleaseCandidate(family=family, version=match.group("major"))
    else:
        if not _MAJOR_MINOR.match(cleaned):
            raise MalformedReleaseError(family, text, "expected major.minor, e.g. '9.5'")
        release = make_point_release(family, cleaned)

    check_release(family, release)
    return release
