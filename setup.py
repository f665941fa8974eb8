"""
Setup configuration for the switchyard package.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="switchyard",
    version="0.1.0",
    author="Switchyard Contributors",
    author_email="contributors@switchyard.example.com",
    description="A minimal web micro-framework with a first-match router, onion middleware and an auto-wiring container",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/yourusername/switchyard",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "server": ["uvicorn"],
        "dev": [
            "pytest>=6.0",
            "pytest-cov",
            "ruff",
            "mypy",
        ],
    },
    project_urls={
        "Bug Reports": "https://github.com/yourusername/switchyard/issues",
        "Source": "https://github.com/yourusername/switchyard",
    },
)
