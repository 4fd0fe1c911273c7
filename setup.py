"""
Project Compass setup.py — Package configuration and CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="project-compass",
    version="1.0.0",
    description="Project Compass — team task boards with a rate-limited member lookup service",
    packages=find_packages(include=["compass", "compass.*"]),
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "compass=compass.cli:main",
        ],
    },
    install_requires=[
        "pydantic>=2.5",
        "redis>=5.0",
        "pyyaml>=6.0",
        "httpx>=0.27",
        "fastapi>=0.110",
        "uvicorn>=0.29",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
)
