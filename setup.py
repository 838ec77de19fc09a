"""Setup script for the maison-energie package."""

from setuptools import find_packages, setup

setup(
    name="maison-energie",
    version="0.1.0",
    description="Home energy, water and gas telemetry ingestion service",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pymysql",
        "pyyaml",
        "python-dotenv",
        "paho-mqtt>=2.0.0",
        "aiohttp>=3.8",
    ],
    extras_require={
        "dev": [
            "pytest",
            "pytest-asyncio",
            "black",
            "isort",
            "mypy",
        ],
    },
    entry_points={
        "console_scripts": [
            "maison-server=maison.server:main",
            "maison-simulator=maison.simulator:main",
        ],
    },
)
