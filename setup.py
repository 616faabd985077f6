#!/usr/bin/env python3
from pathlib import Path
from setuptools import setup, find_packages


ROOT = Path(__file__).parent
REQ_FILE = ROOT / "requirements.txt"
DEV_REQ_FILE = ROOT / "requirements-dev.txt"


def read_requirements(path: Path = REQ_FILE):
    if path.exists():
        with path.open("r", encoding="utf-8") as f:
            reqs = [line.strip() for line in f.readlines()
                    if line.strip() and not line.startswith("#") and not line.startswith("-r")]
        return reqs
    return []


def read_readme():
    for name in ("README.md", "README.rst", "README.txt"):
        p = ROOT / name
        if p.exists():
            return p.read_text(encoding="utf-8")
    return "BatchReplay: replay delimited records as HTTP requests."


setup(
    name="batchreplay",
    version="1.0.0",
    description="BatchReplay: replay delimited records as HTTP requests.",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    author="",
    packages=find_packages(include=["batch_replay", "batch_replay.*"], exclude=["build*", "dist*", "*.egg-info*", "tests*"]),
    python_requires=">=3.9",
    install_requires=read_requirements(),
    extras_require={
        "test": read_requirements(DEV_REQ_FILE),
    },
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "batchreplay=batch_replay.main:main",
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
