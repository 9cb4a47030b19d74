from setuptools import setup, find_packages

setup(
    name="inventario-service",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*", "migrations", "migrations.*"]),
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy[asyncio]",
        "asyncpg",
        "psycopg2-binary",
        "pydantic",
        "alembic",
        "httpx",
        "tenacity",
        "pika",
        "aio-pika",
    ],
    extras_require={
        "test": [
            "pytest",
            "aiosqlite",
        ],
    },
)
