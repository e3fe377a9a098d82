from setuptools import setup, find_packages

setup(
    name="mentorbook",
    version="0.1",
    packages=find_packages(exclude=["tests", "tests.*", "alembic", "alembic.*"]),
    install_requires=[
        "fastapi",
        "uvicorn",
        "sqlalchemy",
        "psycopg2-binary",
        "python-jose[cryptography]",
        "passlib[bcrypt]",
        "bcrypt>=4.0,<5",
        "python-multipart",
        "pydantic[email]",
        "pydantic-settings",
        "python-dotenv",
        "alembic",
        "httpx",
        "tenacity",
    ],
    extras_require={
        "test": [
            "pytest",
            "httpx",
        ],
    },
)
