[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "reactorhttp"
version = "0.1.0"
description = "A small multi-threaded reactor-style HTTP server that serves static files and directory listings"
requires-python = ">=3.10"
dependencies = []
keywords = ["http", "server", "reactor", "event-loop", "epoll", "static-files"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
reactorhttp = "reactorhttp.tcp_server:main"

[tool.hatch.build.targets.wheel]
packages = ["reactorhttp"]

[tool.pytest.ini_options]
addopts = "-ra"
