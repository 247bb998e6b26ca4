"""
Setup script for nanshe-core.

nanshe-core is the client core of the nanshe learning platform. It serves
three roles:

1. Content normalization - one canonical shape for capsules, journal
   entries and SRS cards, whatever the backend payload version
2. Progress and exercises - per-atom progress state and the interactive
   exercise controllers that submit answers
3. Terminal client - the 'nanshe' command for browsing capsules, writing
   journal entries and running review sessions
"""

from setuptools import find_packages, setup

setup(
    name="nanshe-core",
    version="1.0.0",
    description="Learning content normalization, progress tracking and exercise state for nanshe",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="nanshe",
    packages=find_packages(include=["nanshe", "nanshe.*"]),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "nanshe=nanshe.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition exercises education",
)
