"""
Octra wallet setup.py — install the wallet core and its command line.

Usage:
    pip install .              # install everything
    pip install ".[dev]"       # install with dev tools
    pip install -e ".[dev]"    # editable install for development
"""

from pathlib import Path

from setuptools import find_packages, setup

HERE = Path(__file__).resolve().parent
long_description = ""
if (HERE / "README.md").exists():
    long_description = (HERE / "README.md").read_text(encoding="utf-8")

setup(
    name="octra-wallet",
    version="0.4.0",
    description="Octra wallet core: key derivation, signing, encrypted balances and a password vault",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="MIT",
    author="Octra Wallet Contributors",
    python_requires=">=3.10",
    packages=find_packages(exclude=["tests", "tests.*", "build"]),
    py_modules=["run_wallet"],
    install_requires=[
        "pynacl>=1.5.0,<2",
        "mnemonic>=0.20,<1",
        "base58>=2.1.0,<3",
        "pycryptodome>=3.21.0,<4",
        "tomli>=2.0.0,<3;python_version<'3.11'",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "pytest-cov>=4.0",
            "mypy>=1.5",
            "ruff>=0.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "octra-wallet=run_wallet:main_sync",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Security :: Cryptography",
        "Topic :: Office/Business :: Financial",
    ],
)
