"""Setup configuration for Animuse Discord Bot."""

from setuptools import setup, find_packages

setup(
    name="animuse",
    version="0.0.1",
    description="A Discord bot that announces new episodes of tracked anime",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.6",
        "aiohttp>=3.9",
        "aiosqlite>=0.20",
        "PyYAML>=6.0",
        "prompt_toolkit>=3.0",
        "python-dotenv>=1.0",
        "Pillow>=10.0",
        "requests>=2.31",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "animuse=animuse.main:main",
        ],
    },
)
