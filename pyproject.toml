[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wiretap"
version = "0.1.0"
description = "Packet, connection and protocol models with DNS and gRPC dissectors for network traffic analysis"
requires-python = ">=3.10"
keywords = ["network", "packet", "dissector", "dns", "grpc", "protobuf", "tls", "websocket", "http2"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking :: Monitoring",
]
dependencies = [
    "protobuf",
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
    "cryptography",
    "protobuf",
]

[tool.hatch.build.targets.wheel]
packages = ["wiretap"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
