"""bucketfs API: serves private:// files through the hosting application."""

import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from bucketfs.config import Settings, get_settings
from bucketfs.connections import bucketfs_connections
from bucketfs.filesystem import BucketFileSystem


def filesystem(request: Request) -> BucketFileSystem:
    return request.app.state.fs


async def authorize_private_file(path: str) -> bool:
    """
    Decides whether the current request may read private://{path}.
    Everyone may by default; the hosting application overrides this dependency with its own access check.
    """
    return True


async def private_file(
    path: str,
    fs: BucketFileSystem = Depends(filesystem),
    allowed: bool = Depends(authorize_private_file),
):
    """Redirect to a short-lived presigned link for a private file, if access is allowed"""
    uri = f"private://{path}"
    if not await fs.is_file(uri):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"File {path} not found")
    if not allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Access to {path} is not allowed")
    return RedirectResponse(await fs.urls.signed_url(uri), status_code=status.HTTP_302_FOUND)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logging.info(f"Opening bucket {settings.bucket}")
        async with bucketfs_connections(settings) as fs:
            app.state.fs = fs
            yield

    app = FastAPI(
        title="bucketfs",
        description=__doc__ if __doc__ else "",
        openapi_tags=[dict(name="files", description="Endpoints that serve files from the bucket")],
        lifespan=lifespan,
    )

    app_files = APIRouter(prefix=settings.private_route.rstrip("/"), tags=["files"])
    app_files.add_api_route("/{path:path}", private_file, methods=["GET"])
    app.include_router(app_files)

    @app.exception_handler(ValueError)
    async def value_error_exception_handler(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=400,
            content={"message": str(exc)},
        )

    return app
