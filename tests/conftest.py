"""Shared fixtures: recorded vendor documents served through httpx.MockTransport."""

from pathlib import Path

import httpx
import pytest

from pvetmpl.config import ResolverConfig

FIXTURES = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    return (FIXTURES / name).read_text()


def recorded_routes() -> dict[str, str]:
    """URL -> body for every vendor document the resolver reads."""
    routes = {
        "https://cloud-images.ubuntu.com/": load_fixture("ubuntu_index.html"),
        "https://wiki.almalinux.org/cloud/": load_fixture("almalinux_wiki.html"),
        "https://dl.rockylinux.org/pub/rocky/": load_fixture("rocky_listing.html"),
        "https://yum.oracle.com/oracle-linux-templates.html": load_fixture(
            "oracle_templates.html"
        ),
        "https://cloud.centos.org/centos/": load_fixture("centos_listing.html"),
    }
    for major in ("8", "9", "10"):
        routes[f"https://repo.almalinux.org/almalinux/{major}/cloud/x86_64/images/"] = (
            load_fixture(f"almalinux_images_{major}.html")
        )
    for major in ("7", "8", "9", "10"):
        routes[f"https://yum.oracle.com/templates/OracleLinux/ol{major}-template.json"] = (
            load_fixture(f"ol{major}-template.json")
        )
    return routes


class Router:
    """Serve canned responses by URL and record the requests made."""

    def __init__(self, routes: dict[str, str | int | Exception]):
        self.routes = routes
        self.requests: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        answer = self.routes.get(url, 404)
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, int):
            return httpx.Response(answer, text="")
        return httpx.Response(200, text=answer)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self), follow_redirects=True)


@pytest.fixture
def router() -> Router:
    return Router(recorded_routes())


@pytest.fixture
def client(router):
    with router.client() as http:
        yield http


@pytest.fixture
def config() -> ResolverConfig:
    return ResolverConfig(timeout=1.0, retries=1, overall_timeout=10.0)
