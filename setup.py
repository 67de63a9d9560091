#!/usr/bin/env python3
# =============================================================================
#  lsap-core: setup.py
#
#  The version lives in lsap_core/__init__.py; runtime dependencies live in
#  requirements.txt.  Both are read here so there is one source of truth.
#
#      pip install -e ".[dev]"
#      python -m pytest
# =============================================================================

from __future__ import annotations

import re
from pathlib import Path

from setuptools import setup, find_packages

_HERE = Path(__file__).resolve().parent


def _read_version() -> str:
    """Extract ``__version__`` from the package ``__init__``."""
    init = _HERE / "lsap_core" / "__init__.py"
    text = init.read_text(encoding="utf-8")
    match = re.search(r'^__version__\s*=\s*"([^"]+)"', text, re.MULTILINE)
    if match:
        return match.group(1)
    return "0.0.0"


def _read_requirements() -> list[str]:
    """Runtime requirements, one per line; blank lines and comments skipped."""
    path = _HERE / "requirements.txt"
    if not path.exists():
        return []
    text = path.read_text(encoding="utf-8")
    stripped = (line.split("#", 1)[0].strip() for line in text.splitlines())
    return [req for req in stripped if req]


setup(
    name="lsap-core",
    version=_read_version(),
    description=(
        "Control-flow analyses for paired-event verification: dominance, "
        "event flow graph reduction and path feasibility."
    ),
    license="MIT",
    author="lsap-core contributors",
    python_requires=">=3.10",
    packages=find_packages(
        include=[
            "lsap_core",
            "lsap_core.*",
        ],
        exclude=[
            "tests",
            "tests.*",
        ],
    ),
    package_data={
        "lsap_core": ["py.typed"],
    },
    install_requires=_read_requirements(),
    extras_require={
        "smt": [
            "z3-solver>=4.12",
        ],
        "test": [
            "pytest>=7.0",
        ],
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "ruff>=0.4",
            "mypy>=1.10",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Software Development :: Quality Assurance",
        "Typing :: Typed",
    ],
    keywords=[
        "static-analysis",
        "control-flow",
        "dominators",
        "event-flow-graph",
        "path-feasibility",
        "program-analysis",
    ],
    zip_safe=False,
)
