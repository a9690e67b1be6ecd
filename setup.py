"""
Setup configuration for dreamcatcher package.
"""

from setuptools import setup, find_packages

setup(
    name="dreamcatcher",
    version="1.0.0",
    description="Dream journal with comic panel generation and page composition",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.9",
        "python-dotenv>=1.0",
        "httpx>=0.27",
        "tenacity>=8.2",
        "Pillow>=10.1",
        "click>=8.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
        # On-device rendering when no backend token is configured
        "local": [
            "torch>=2.1",
            "diffusers>=0.27",
            "transformers>=4.38",
            "accelerate>=0.27",
        ],
    },
    entry_points={
        "console_scripts": [
            "dreamcatcher=dreamcatcher.cli.main:cli",
        ],
    },
)
