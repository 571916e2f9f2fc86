#!/usr/bin/env python

from setuptools import setup

setup(
    name="bucketfs",
    version="0.1.0",
    description="Filesystem semantics, metadata cache and link policies for S3 buckets",
    packages=["bucketfs", "bucketfs.objectstorage"],
    include_package_data=True,
    zip_safe=False,
    python_requires=">=3.11",
    keywords=["S3", "filesystem", "cache"],
    classifiers=[
        "License :: OSI Approved :: MIT License",
        "Topic :: System :: Filesystems",
    ],
    install_requires=[
        "fastapi",
        "uvicorn",
        "aiobotocore",
        "types-aiobotocore-s3",
        "sqlalchemy[asyncio]>=2.0",
        "aiosqlite",
        "async-lru>=2.0",
        "pydantic>=2",
        "pydantic-settings>=2.7",
        "python-dotenv",
        "typing_extensions",
    ],
    extras_require={
        "test": [
            "pytest",
            "anyio",
            "httpx",
        ],
        "dev": [
            "pytest",
            "anyio",
            "httpx",
            "mypy",
            "flake8",
        ]
    },
    entry_points={
        "console_scripts": [
            "bucketfs = bucketfs.__main__:main",
        ]
    },
)
