from __future__ import annotations

from setuptools import find_packages, setup

setup(
    name="watchlist-sync",
    version="0.1.0",
    # Repo convention: backend code lives under `backend/`; the import path is
    # plain `watchlist_sync`.
    package_dir={"": "backend"},
    packages=find_packages(where="backend", include=["watchlist_sync", "watchlist_sync.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pydantic==2.10.6",
        "python-dotenv>=1.0",
        # Remote document store adapters.
        "aiohttp>=3.9",
        "redis>=5.0.1",
    ],
    extras_require={
        # Test runner; the tests themselves are plain unittest.
        "test": ["pytest>=8.0"],
    },
)
