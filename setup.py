#!/usr/bin/env python3

# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: MIT-0

"""
Setup configuration for fundtracker_common package.

This shared library provides utilities for the stage Lambda functions:
- Lease-based job queues and dead-letter handling over a TTL key-value store
- Seen-subject ledger for discovery deduplication
- Funding portal scraping (HTTP with Playwright fallback)
- Bedrock summaries and Discord delivery
"""

from setuptools import find_packages, setup

setup(
    name="fundtracker_common",
    version="0.1.0",
    description="Shared queue and scraping utilities for FundTracker Lambda functions",
    package_dir={"": "lib"},
    packages=find_packages("lib"),
    python_requires=">=3.11",
    install_requires=[
        "boto3>=1.34.0",
        # Scraping dependencies
        "httpx>=0.27.0",
        "beautifulsoup4>=4.12.0",
        "markdownify>=0.13.0",
        "lxml>=5.0.0",
    ],
    extras_require={
        "browser": ["playwright>=1.40.0"],
        "test": [
            "pytest>=8.0.0",
            "moto[dynamodb]>=5.0.0",
        ],
    },
    author="Development Team",
    license="MIT-0",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
)
