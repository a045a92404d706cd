from setuptools import find_packages, setup

setup(
    name="featuremanifest",
    version="0.1.0",
    description="Download and decode the web features manifest from GitHub releases",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.9",
    install_requires=[
        "aiohttp",
        "aiofiles",
        "platformdirs",
        "PyYAML",
        "rich",
    ],
    extras_require={
        "test": [
            "pytest<9.1",
            "pytest-asyncio",
            "pytest-mock",
        ],
    },
    entry_points={
        "console_scripts": [
            "featuremanifest=featuremanifest.cli:main",
        ],
    },
)
