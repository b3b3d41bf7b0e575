"""
GeoStamp Engine

Plugin-based location proof verification with explainable credibility
assessment and EAS-style attestation encoding.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="geostamp-engine",
    version="0.1.0",
    author="GeoStamp Contributors",
    description="Location proof verification and credibility assessment engine",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Scientific/Engineering :: GIS",
        "Topic :: Security :: Cryptography",
    ],
    python_requires=">=3.10",
    install_requires=[
        "eth-abi>=5.0",
        "eth-account>=0.10",
        "eth-utils>=4.0",
        "eth-hash[pycryptodome]>=0.5",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "geostamp=geostamp.cli.main:main",
        ],
    },
)
