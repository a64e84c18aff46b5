#!/usr/bin/env python3
import os
import sys

from setuptools import setup


def main():
    """The main entry point."""
    if sys.version_info[:2] < (3, 6):
        sys.exit("tsh5 currently requires Python 3.6+")
    with open(os.path.join(os.path.dirname(__file__), "README.md"), "r") as f:
        readme = f.read()
    skw = dict(
        name="tsh5",
        description="Deduplicated time series storage in HDF5",
        long_description=readme,
        long_description_content_type="text/markdown",
        license="BSD-3-Clause",
        version="0.0.1",
        platforms="Cross Platform",
        classifiers=["Programming Language :: Python :: 3"],
        packages=["tsh5"],
        package_dir={"tsh5": "tsh5"},
        zip_safe=True,
        install_requires=["h5py >= 3.0", "numpy>=1.16"],
        extras_require={"tests": ["pytest>=3.5,<9", "pytest-black", "pytest-cov"]},
    )
    setup(**skw)


if __name__ == "__main__":
    main()
