"""
Setup script for the wabot package.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read version from wabot/__init__.py
version = "1.0.0"
init_file = Path(__file__).parent / "wabot" / "__init__.py"
if init_file.exists():
    for line in init_file.read_text(encoding="utf-8").splitlines():
        if line.startswith("__version__"):
            version = line.split("=")[1].strip().strip('"').strip("'")
            break

setup(
    name="wa-command-bot",
    version=version,
    description="Minimal WhatsApp command bot (!ping, !help, !time, !about, !echo)",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests*"]),
    include_package_data=True,
    entry_points={
        "console_scripts": [
            "wabot=wabot.__main__:main",
        ],
    },
    install_requires=[
        "pyyaml>=6.0",
        "python-dotenv>=1.0.0",
        "qrcode>=7.4",
    ],
    extras_require={
        "whatsapp": [
            "pyaileys>=0.1.5",
            "protobuf>=4.21",
        ],
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.12.0",
            "pyaileys>=0.1.5",
            "protobuf>=4.21",
            "black>=23.12.0",
            "flake8>=6.1.0",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Communications :: Chat",
    ],
    keywords="whatsapp bot chat commands",
)
