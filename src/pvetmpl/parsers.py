"""Parsers turning vendor listing documents into release candidates.

Every function here is pure: raw document in, structured values out. Source
format drift shows up as an empty result (or ValueError for JSON
descriptors) and can be tested against recorded fixture documents.
"""

import html
import re

from pvetmpl.families import (
    DistributionFamily,
    ReleaseCandidate,
    make_point_release,
    version_key,
)

_TAG = re.compile(r"<[^>]+>")

# "Ubuntu Server 24.04 LTS (Noble Numbat)"
_UBUNTU_LTS = re.compile(
    r"Ubuntu(?:\s+Server)?\s+(?P<version>\d+\.\d+(?:\.\d+)?)\s+LTS\s*"
    r"\(?\s*(?P<first>[A-Za-z]+)\s+(?P<second>[A-Za-z]+)\s*\)?"
)
_ALMA_MAJOR = re.compile(r"AlmaLinux OS (\d+)\b(?!\.\d)")
_ROCKY_DIR = re.compile(r'href="(\d+)\.(\d+)/?"')
_ORACLE_DESCRIPTOR = re.compile(r"""['"]([^'"\s<>]+\.json)['"]""")
_ORACLE_MAJOR = re.compile(r"ol(\d+)", re.IGNORECASE)
# Architecture as a path component: "ol9-aarch64-template.json", "OL9/arm64/..."
_ORACLE_ARM = re.compile(r"(?:^|[-_/.])(?:aarch64|arm64|arm)(?=[-_/.]|$)", re.IGNORECASE)
_CENTOS_STREAM = re.compile(r'href="(\d+)-stream/?"')


def strip_tags(text: str) -> str:
    """Replace markup with spaces and unescape entities."""
    return html.unescape(_TAG.sub(" ", text))


def unique(candidates: list[ReleaseCandidate]) -> list[ReleaseCandidate]:
    """Drop candidates repeating an earlier version label."""
    seen = set()
    result = []
    for candidate in candidates:
        if candidate.version in seen:
            continue
        seen.add(candidate.version)
        result.append(candidate)
    return result


def parse_ubuntu_index(text: str) -> list[ReleaseCandidate]:
    """Extract LTS releases with their code names from the cloud-images index."""
    candidates = []
    for line in text.splitlines():
        if "LTS" not in line:
            continue
        line = strip_tags(line).replace("daily builds", "")
        # Annotations such as "[deprecated]" trail the description
        line = line.split("[")[0]
        match = _UBUNTU_LTS.search(line)
        if not match:
            continue
        candidates.append(
            ReleaseCandidate(
                family=DistributionFamily.UBUNTU,
                version=match.group("version"),
                code_name=f"{match.group('first')} {match.group('second')}",
            )
        )
    return unique(candidates)


def parse_almalinux_majors(text: str) -> list[str]:
    """Extract the advertised major versions ("8", "9", "10") from the wiki."""
    majors = []
    for major in _ALMA_MAJOR.findall(strip_tags(text)):
        if major not in majors:
            majors.append(major)
    return majors


def parse_almalinux_point_release(text: str, major: str) -> str | None:
    """Find the latest "major.point" among a major's GenericCloud images."""
    pattern = re.compile(
        rf"AlmaLinux-{re.escape(major)}-GenericCloud-({re.escape(major)}\.\d+)-"
    )
    releases = set(pattern.findall(text))
    if not releases:
        return None
    return max(releases, key=version_key)


def parse_rocky_listing(text: str) -> list[ReleaseCandidate]:
    """Extract the highest minor per major from the Rocky mirror listing."""
    highest: dict[int, int] = {}
    for major, minor in _ROCKY_DIR.findall(text):
        major_num, minor_num = int(major), int(minor)
        if major_num not in highest or minor_num > highest[major_num]:
            highest[major_num] = minor_num

    return [
        make_point_release(DistributionFamily.ROCKY, f"{major}.{minor}")
        for major, minor in highest.items()
    ]


def _descriptor_major(path: str) -> int:
    match = _ORACLE_MAJOR.search(path.rsplit("/", 1)[-1])
    return int(match.group(1)) if match else -1


def parse_oracle_descriptor_paths(text: str) -> list[str]:
    """Extract x86_64 JSON descriptor paths, highest major first."""
    paths = []
    for path in _ORACLE_DESCRIPTOR.findall(text):
        if _ORACLE_ARM.search(path):
            continue
        if path not in paths:
            paths.append(path)
    return sorted(paths, key=_descriptor_major, reverse=True)


def oracle_descriptor_path(major: str) -> str:
    """Descriptor path for a single Oracle Linux major version."""
    return f"templates/OracleLinux/ol{major}-template.json"


def find_field(document, key: str) -> str | None:
    """Depth-first search for the first scalar value stored under ``key``."""
    if isinstance(document, dict):
        value = document.get(key)
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return str(value)
        children = document.values()
    elif isinstance(document, list):
        children = document
    else:
        return None

    for child in children:
        found = find_field(child, key)
        if found is not None:
            return found
    return None


def parse_oracle_descriptor(document) -> dict[str, str | None]:
    """Pull version, release, qcow2 and base_url out of a descriptor."""
    return {
        key: find_field(document, key)
        for key in ("version", "release", "qcow2", "base_url")
    }


def parse_oracle_release(document) -> ReleaseCandidate:
    """Build a candidate from a descriptor's version and release fields."""
    fields = parse_oracle_descriptor(document)
    version, release = fields["version"], fields["release"]
    if not version or not release or not version.isdigit() or not release.isdigit():
        raise ValueError(
            f"descriptor has no usable version/release: {version!r}/{release!r}"
        )
    return make_point_release(DistributionFamily.ORACLE, f"{version}.{release}")


def parse_centos_listing(text: str) -> list[ReleaseCandidate]:
    """Extract "N-stream" entries, skipping those flagged deprecated."""
    candidates = []
    for line in text.splitlines():
        if "danger" in line or "-stream" not in line:
            continue
        for major in _CENTOS_STREAM.findall(line):
            candidates.append(
                ReleaseCandidate(family=DistributionFamily.CENTOS_STREAM, version=major)
            )
    return unique(candidates)
