"""
EPP Data Layer
Event-driven cluster state for inference request routing
"""

from setuptools import find_packages, setup

setup(
    name="epp-datalayer",
    version="0.1.0",
    description="Event-driven data layer for the inference endpoint picker",
    author="SAGE Project",
    license="Apache License 2.0",
    packages=find_packages(include=["epp", "epp.*"]),
    python_requires=">=3.10",
    install_requires=[
        "aiohttp>=3.8.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "aioresponses>=0.7.4",
            # aioresponses 0.7.9 cannot build ClientResponse on aiohttp 3.14+
            "aiohttp<3.14",
            "ruff>=0.1.0",
        ],
    },
)
