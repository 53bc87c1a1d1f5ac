"""Setup configuration for relaywatch package."""

from setuptools import setup, find_packages
from pathlib import Path

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text()

setup(
    name="relaywatch",
    version="0.1.1",
    author="relaywatch Contributors",
    author_email="",
    description="Query MEV-Boost relays to see which relays will build the upcoming beacon chain blocks",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*", "examples", "examples.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: System :: Networking",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
        "Typing :: Typed",
    ],
    python_requires=">=3.8",
    install_requires=[
        "pandas>=2.0.0",
        "aiohttp>=3.9.0",
        "pydantic>=2.5.0",
        "backoff>=2.2.1",
        "fastparquet>=2024.2.0",
        "click>=8.1.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "black>=23.12.0",
            "mypy>=1.8.0",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "relaywatch=relaywatch.cli:cli",
        ],
    },
    include_package_data=True,
    package_data={
        "relaywatch": ["py.typed"],
    },
    zip_safe=False,
    keywords="ethereum mev-boost relay pbs validator registration beacon chain",
)
