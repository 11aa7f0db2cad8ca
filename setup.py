from setuptools import setup, find_packages


setup(
    name="pathhole-relay",
    version="0.1.0",
    description="Realtime relay hub between a vehicle controller and dashboard observers",
    packages=find_packages(include=["services*", "libs*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.110.0",
        "motor>=3.3.0",
        "requests>=2.31.0",
        "uvicorn[standard]>=0.24.0",
        "websockets>=13.0",
    ],
    extras_require={
        "test": [
            "httpx>=0.25.0",
            "pytest>=7.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
)
