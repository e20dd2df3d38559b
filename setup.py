#!/usr/bin/python3
# Setup file for ghtree
# Copyright (C) 2026 The ghtree contributors
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later

from setuptools import setup

tests_require = ["aiohttp>=3.9"]

setup(
    name="ghtree",
    version="0.1.0",
    description="Virtual Git trees published through the GitHub Git Data API",
    license="Apache-2.0 OR GPL-2.0-or-later",
    python_requires=">=3.10",
    packages=["ghtree"],
    package_data={"": ["py.typed"]},
    install_requires=["urllib3>=2.0"],
    extras_require={
        "aiohttp": ["aiohttp>=3.9"],
        "test": tests_require,
    },
    entry_points={
        "console_scripts": ["ghtree=ghtree.cli:_main"],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX",
        "Topic :: Software Development :: Version Control",
    ],
)
