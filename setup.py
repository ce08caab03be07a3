"""Setup script for dotctx package."""

from setuptools import setup, find_packages
import pathlib

# Get the long description from the README file
here = pathlib.Path(__file__).parent.resolve()
long_description = (here / "README.md").read_text(encoding="utf-8") if (here / "README.md").exists() else "dotctx: compile a .ctx/ context store into budgeted context for AI coding tools."

setup(
    name="dotctx",
    version="0.1.0",
    description="Compile a project's .ctx/ context store into budgeted context for AI coding tools",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="dotctx contributors",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Software Development :: Documentation",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="llm, context, token-budgeting, ai, developer-tools",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.8, <4",
    install_requires=[
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=6.0",
            "pytest-cov>=2.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
        "test": [
            "pytest>=6.0",
            "pytest-cov>=2.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "dotctx=dotctx.cli:main",
        ],
    },
)
