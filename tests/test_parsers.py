"""Tests for the listing parsers against recorded vendor documents."""

import json

import pytest

from conftest import load_fixture
from pvetmpl import parsers
from pvetmpl.families import DistributionFamily


def test_ubuntu_index():
    """Only LTS lines are kept, with their two-word code names."""
    releases = parsers.parse_ubuntu_index(load_fixture("ubuntu_index.html"))
    versions = [r.version for r in releases]

    assert "25.04" not in versions, "non-LTS release leaked into the list"
    assert set(versions) == {"16.04", "18.04", "20.04", "22.04", "24.04"}

    noble = next(r for r in releases if r.version == "24.04")
    assert noble.code_name == "Noble Numbat"
    assert noble.family is DistributionFamily.UBUNTU
    bionic = next(r for r in releases if r.version == "18.04")
    assert bionic.code_name == "Bionic Beaver"


def test_ubuntu_plain_text_line():
    text = "- Ubuntu Server 24.04 LTS (Noble Numbat) daily builds\n"
    releases = parsers.parse_ubuntu_index(text)
    assert [(r.version, r.code_name) for r in releases] == [("24.04", "Noble Numbat")]


def test_almalinux_majors():
    majors = parsers.parse_almalinux_majors(load_fixture("almalinux_wiki.html"))
    assert sorted(majors, key=int) == ["8", "9", "10"]


def test_almalinux_point_release_is_numeric_max():
    assert parsers.parse_almalinux_point_release(
        load_fixture("almalinux_images_9.html"), "9"
    ) == "9.5"
    # 8.10 beats 8.9 numerically
    assert parsers.parse_almalinux_point_release(
        load_fixture("almalinux_images_8.html"), "8"
    ) == "8.10"
    assert parsers.parse_almalinux_point_release(
        load_fixture("almalinux_images_10.html"), "10"
    ) == "10.0"


def test_almalinux_point_release_ignores_other_majors():
    listing = load_fixture("almalinux_images_9.html")
    assert parsers.parse_almalinux_point_release(listing, "8") is None


def test_rocky_listing_keeps_highest_minor():
    releases = parsers.parse_rocky_listing(load_fixture("rocky_listing.html"))
    assert sorted(r.version for r in releases) == ["10.0", "8.10", "9.6"]
    assert all(r.point_release == r.version.split(".")[1] for r in releases)


def test_oracle_descriptor_paths():
    paths = parsers.parse_oracle_descriptor_paths(load_fixture("oracle_templates.html"))
    assert paths == [
        "templates/OracleLinux/ol10-template.json",
        "templates/OracleLinux/ol9-template.json",
        "templates/OracleLinux/ol8-template.json",
        "templates/OracleLinux/ol7-template.json",
    ]


def test_oracle_arm_filter_matches_whole_components():
    """Only arm architecture components are dropped, not words containing "arm"."""
    text = """
    renderTemplate('#ol9', 'templates/Charmed/ol9-template.json');
    renderTemplate('#ol8', 'templates/OracleLinux/ol8-template.json');
    renderTemplate('#ol9-arm', 'templates/OracleLinux/ol9-arm-template.json');
    renderTemplate('#ol8-arm', 'templates/OracleLinux/ol8-aarch64-template.json');
    renderTemplate('#ol7-arm', 'templates/OracleLinux/ARM64/ol7-template.json');
    """
    assert parsers.parse_oracle_descriptor_paths(text) == [
        "templates/Charmed/ol9-template.json",
        "templates/OracleLinux/ol8-template.json",
    ]


def test_oracle_descriptor_fields():
    document = json.loads(load_fixture("ol9-template.json"))
    fields = parsers.parse_oracle_descriptor(document)
    assert fields == {
        "version": "9",
        "release": "5",
        "qcow2": "OL9U5_x86_64-kvm-b259.qcow2",
        "base_url": "/templates/OracleLinux/OL9/u5/x86_64",
    }
    assert parsers.parse_oracle_release(document).version == "9.5"


def test_oracle_descriptor_without_release():
    with pytest.raises(ValueError):
        parsers.parse_oracle_release({"version": "9"})


def test_centos_listing_skips_deprecated():
    releases = parsers.parse_centos_listing(load_fixture("centos_listing.html"))
    assert [r.version for r in releases] == ["9", "10"]


@pytest.mark.parametrize(
    "parse",
    [
        parsers.parse_ubuntu_index,
        parsers.parse_rocky_listing,
        parsers.parse_centos_listing,
    ],
)
def test_format_drift_yields_nothing(parse):
    """A page that no longer matches gives an empty list, not an exception."""
    assert parse("<html><body><p>We moved! See our new site.</p></body></html>") == []


def test_unique_keeps_first():
    releases = parsers.parse_centos_listing(
        '<a href="9-stream/">9-stream/</a>\n<a href="9-stream/">9-stream/</a>\n'
    )
    assert len(releases) == 1
