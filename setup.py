from setuptools import setup, find_packages

setup(
    name="tangohub",
    version="0.1.0",
    packages=find_packages(include=["tangohub", "tangohub.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "starlette",
        "pydantic>=2.5",
        "pydantic-settings>=2.7",
        "httpx>=0.27",
        "uvicorn[standard]",
    ],
    extras_require={
        "test": [
            "pytest>=8",
            "pytest-asyncio>=0.23",
        ],
    },
)
