from setuptools import find_packages, setup


setup(
    name="flipcap",
    version="0.1.0",
    description="Shared, rate-limit aware market cap cache for a single Solana token",
    packages=find_packages(include=["flipcap", "flipcap.*"]),
    python_requires=">=3.10",
    install_requires=[
        "aiohttp>=3.9",
        "orjson>=3.9",
        "pydantic>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
)
