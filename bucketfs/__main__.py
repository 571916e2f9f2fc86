"""
bucketfs: a filesystem view on an S3 bucket
"""

import argparse
import asyncio
import inspect
import json
import logging
import stat
import sys

import uvicorn

from bucketfs.config import ENV_PREFIX, get_settings
from bucketfs.connections import bucketfs_connections
from bucketfs.db import create_engine, create_tables
from bucketfs.refresh import refresh_cache


def run(args):
    settings = get_settings()
    logging.info(f"Starting server at port {args.port}, bucket={settings.bucket}, debug={not args.nodebug}")
    logging.info(
        "To change server config, create an .env file and/or set environment parameters,\n"
        f"{' ' * 26}see bucketfs/config.py or run `python -m bucketfs config` for the current values\n"
    )
    uvicorn.run(
        "bucketfs.api:create_app",
        factory=True,
        host="0.0.0.0",
        reload=not args.nodebug,
        port=int(args.port),
    )


def config(_args):
    for k, v in get_settings().model_dump(mode="json").items():
        if isinstance(v, list):
            v = json.dumps(v)
        print(f"{ENV_PREFIX.upper()}{k.upper()}={'' if v is None else v}")


async def init_db(_args):
    settings = get_settings()
    engine = create_engine(settings.database_url)
    try:
        await create_tables(engine)
    finally:
        await engine.dispose()
    logging.info(f"Metadata table ready in {settings.database_url}")


async def refresh(_args):
    async with bucketfs_connections(get_settings()) as fs:
        result = await refresh_cache(fs.store, fs.paths, fs.cache)
    print(f"Cached {result['files']} files and {result['directories']} directories")


async def stat_uri(args):
    async with bucketfs_connections(get_settings()) as fs:
        st = await fs.url_stat(args.uri)
    if st is None:
        logging.error(f"{args.uri}: no such file or directory")
        sys.exit(1)
    kind = "directory" if stat.S_ISDIR(st.st_mode) else "file"
    print(f"{args.uri}: {kind}, {st.st_size} bytes, mode {stat.filemode(st.st_mode)}, mtime {st.st_mtime}")


async def list_dir(args):
    async with bucketfs_connections(get_settings()) as fs:
        listing = await fs.opendir(args.uri)
        if listing is None:
            logging.error(f"{args.uri}: not a directory")
            sys.exit(1)
        async for name in listing:
            print(name)


async def url(args):
    async with bucketfs_connections(get_settings()) as fs:
        print(await fs.external_url(args.uri))


def main():
    parser = argparse.ArgumentParser(description=__doc__, prog="python -m bucketfs")

    subparsers = parser.add_subparsers(dest="action", title="action", help="Action to perform:", required=True)
    p = subparsers.add_parser("run", help="Run the private file server")
    p.add_argument(
        "--no-debug",
        action="store_true",
        dest="nodebug",
        help="Disable debug mode (no auto reload)",
    )
    p.add_argument("-p", "--port", help="Port", default=5000)
    p.set_defaults(func=run)

    p = subparsers.add_parser("config", help="Print the current settings as environment variables")
    p.set_defaults(func=config)

    p = subparsers.add_parser("init-db", help="Create the metadata table")
    p.set_defaults(func=init_db)

    p = subparsers.add_parser("refresh-cache", help="Rebuild the metadata cache from the contents of the bucket")
    p.set_defaults(func=refresh)

    p = subparsers.add_parser("stat", help="Show file or directory information")
    p.add_argument("uri", help="e.g. public://images/logo.png")
    p.set_defaults(func=stat_uri)

    p = subparsers.add_parser("ls", help="List a directory")
    p.add_argument("uri", help="e.g. public://images")
    p.set_defaults(func=list_dir)

    p = subparsers.add_parser("url", help="Show the external url for a file")
    p.add_argument("uri", help="e.g. public://images/logo.png")
    p.set_defaults(func=url)

    args = parser.parse_args()

    logging.basicConfig(format="[%(levelname)-7s:%(name)-15s] %(message)s", level=logging.INFO)
    for name in ("botocore", "aiobotocore", "sqlalchemy"):
        logging.getLogger(name).setLevel(logging.WARNING)

    if inspect.iscoroutinefunction(args.func):
        asyncio.run(args.func(args))
    else:
        args.func(args)


if __name__ == "__main__":
    main()
