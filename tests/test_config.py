"""Tests for configuration precedence and template settings validation."""

import pytest

from pvetmpl.config import (
    ResolverConfig,
    TemplateSettings,
    get_download_dir,
    load_config,
    load_template_settings,
    read_resolv_conf,
)
from pvetmpl.errors import ConfigError
from pvetmpl.families import DistributionFamily, ResolvedTemplate

NOBLE = ResolvedTemplate(
    cloud_image_url="https://cloud-images.ubuntu.com/noble/current/noble-server-cloudimg-amd64.img",
    local_filename="noble-server-cloudimg-amd64.img",
    default_template_name="ubuntu-24.04-noble",
    family=DistributionFamily.UBUNTU,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "TIMEOUT", "RETRIES", "OVERALL_TIMEOUT", "MAX_WORKERS", "LIMIT", "USER_AGENT",
        "DOWNLOAD_DIR", "MEMORY", "CORES", "DISK_SIZE", "VM_ID", "TEMPLATE_NAME",
        "CLOUD_USER", "NAMESERVER", "SEARCHDOMAIN",
    ):
        monkeypatch.delenv(f"PVETMPL_{name}", raising=False)


@pytest.fixture
def resolv_conf(tmp_path):
    path = tmp_path / "resolv.conf"
    path.write_text(
        "# Generated by NetworkManager\n"
        "search old.example\n"
        "nameserver 10.0.0.1\n"
        "search lab.example\n"
        "nameserver 10.0.0.53\n"
    )
    return path


def test_defaults():
    config = load_config()
    assert config == ResolverConfig()
    assert config.limit == 3
    assert config.retries == 1


def test_precedence_override_env_default(monkeypatch):
    monkeypatch.setenv("PVETMPL_TIMEOUT", "12.5")
    monkeypatch.setenv("PVETMPL_LIMIT", "5")

    config = load_config()
    assert config.timeout == 12.5
    assert config.limit == 5

    config = load_config(timeout=2, limit=None)
    assert config.timeout == 2.0, "explicit override must beat the environment"
    assert config.limit == 5, "None means no override"


def test_invalid_env_value(monkeypatch):
    monkeypatch.setenv("PVETMPL_RETRIES", "twice")
    with pytest.raises(ConfigError):
        load_config()


@pytest.mark.parametrize(
    "overrides",
    [{"timeout": 0}, {"retries": -1}, {"limit": 0}, {"max_workers": 0}, {"colour": "red"}],
)
def test_invalid_config(overrides):
    with pytest.raises(ConfigError):
        load_config(**overrides)


def test_download_dir(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    assert get_download_dir() == tmp_path
    monkeypatch.setenv("PVETMPL_DOWNLOAD_DIR", str(tmp_path / "images"))
    assert get_download_dir() == tmp_path / "images"


def test_read_resolv_conf(resolv_conf, tmp_path):
    assert read_resolv_conf(resolv_conf) == {
        "nameserver": "10.0.0.53",
        "searchdomain": "lab.example",
    }
    assert read_resolv_conf(tmp_path / "missing") == {}


def test_template_settings_discovered_values(resolv_conf):
    settings = load_template_settings(NOBLE, resolv_conf)
    assert settings.template_name == "ubuntu-24.04-noble"
    assert settings.memory == 2048
    assert settings.cores == 1
    assert settings.disk_size == 40
    assert settings.nameserver == "10.0.0.53"
    assert settings.searchdomain == "lab.example"
    assert settings.vm_id is None


def test_template_settings_precedence(monkeypatch, resolv_conf):
    monkeypatch.setenv("PVETMPL_NAMESERVER", "1.1.1.1")
    monkeypatch.setenv("PVETMPL_MEMORY", "4096")

    settings = load_template_settings(NOBLE, resolv_conf, memory=8192, template_name="noble-k8s")
    assert settings.memory == 8192
    assert settings.template_name == "noble-k8s"
    assert settings.nameserver == "1.1.1.1", "environment beats /etc/resolv.conf"
    assert settings.searchdomain == "lab.example"


def test_template_settings_validation(resolv_conf):
    with pytest.raises(ConfigError) as excinfo:
        load_template_settings(NOBLE, resolv_conf, vm_id=42, memory=512, disk_size=10)
    message = str(excinfo.value)
    assert "VM ID" in message
    assert "1024 MB" in message
    assert "40 GB" in message


def test_template_settings_rules():
    TemplateSettings(template_name="t", vm_id=100).validate()
    TemplateSettings(template_name="t", vm_id=1000000).validate()
    with pytest.raises(ConfigError):
        TemplateSettings(template_name="t", vm_id=1000001).validate()
    with pytest.raises(ConfigError):
        TemplateSettings(template_name=" ").validate()
    with pytest.raises(ConfigError):
        TemplateSettings(template_name="t", cores=0).validate()
