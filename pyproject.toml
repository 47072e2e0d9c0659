[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "aiskit"
version = "0.1.0"
description = "Service building blocks: ULID and Snowflake ids, dataclass validation, JSON replies, graceful shutdown, HTTP/gRPC server helpers and tenant-context primitives for SQLAlchemy models."
requires-python = ">=3.10"
keywords = [
    "ulid",
    "snowflake",
    "validation",
    "multi-tenant",
    "graceful-shutdown",
    "grpc",
    "wsgi",
    "sqlalchemy",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Server",
    "Typing :: Typed",
]
dependencies = [
    "sqlalchemy>=2.0",
    "grpcio>=1.60",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
]

[tool.hatch.build.targets.wheel]
packages = ["aiskit"]

[tool.hatch.build.targets.sdist]
include = ["aiskit", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
