#!/usr/bin/env python3
"""
Setup configuration for Recstream
"""

from setuptools import setup, find_packages

setup(
    name="recstream",
    version="1.0.0",
    author="Recstream Team",
    description="Recommendation engine fed by user activity events, with background model training and online model updates",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
    ],
    python_requires=">=3.10",
    install_requires=[
        # Core Dependencies
        "numpy>=1.24.0",

        # Event Bus
        "redis>=5.0.1",

        # Serving
        "fastapi>=0.100.0",
        "uvicorn[standard]>=0.23.0",
        "httpx>=0.24.0",
        "pydantic>=2.0.0",

        # Storage
        "asyncpg>=0.28.0",
        "orjson>=3.9.0",

        # Configuration
        "pyyaml>=6.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "recstream-server=recstream.serving.api:main",
            "recstream-train=recstream.ml.training:main",
        ],
    },
    zip_safe=False,
    keywords="recommendation-engine collaborative-filtering event-driven model-training",
)
