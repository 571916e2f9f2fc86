import pytest
from httpx import ASGITransport, AsyncClient

from bucketfs.api import authorize_private_file, create_app
from bucketfs.models import FileMetadata


@pytest.fixture()
def app(settings, fs):
    app = create_app(settings)
    app.state.fs = fs
    return app


@pytest.fixture()
async def client(app, anyio_backend):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client


@pytest.mark.anyio
async def test_private_file_redirects(client, fs):
    await fs.cache.write(FileMetadata(uri="private://reports/q1.pdf", filesize=10, timestamp=1))
    res = await client.get("/system/files/reports/q1.pdf")
    assert res.status_code == 302
    location = res.headers["location"]
    assert location.startswith("https://s3.test/test-bucket/s3fs-private/reports/q1.pdf?")
    assert "X-Amz-Expires=60" in location


@pytest.mark.anyio
async def test_private_file_not_found(client, fs):
    await fs.mkdir("private://reports")
    assert (await client.get("/system/files/reports/q2.pdf")).status_code == 404
    assert (await client.get("/system/files/reports")).status_code == 404


@pytest.mark.anyio
async def test_private_file_forbidden(app, client, fs):
    async def nobody(path: str) -> bool:
        return False

    app.dependency_overrides[authorize_private_file] = nobody
    await fs.cache.write(FileMetadata(uri="private://reports/q1.pdf", filesize=10, timestamp=1))
    res = await client.get("/system/files/reports/q1.pdf")
    assert res.status_code == 403
    # missing files are still not found
    assert (await client.get("/system/files/reports/q2.pdf")).status_code == 404


@pytest.mark.anyio
async def test_private_route_is_configurable(make_settings, fs):
    app = create_app(make_settings(private_route="/files/private/"))
    app.state.fs = fs
    await fs.cache.write(FileMetadata(uri="private://a.txt", filesize=1, timestamp=1))
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        assert (await client.get("/files/private/a.txt")).status_code == 302
        assert (await client.get("/system/files/a.txt")).status_code == 404
