[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "gitopskit"
version = "0.1.0"
description = "Helpers for GitOps tooling: Kubernetes manifest utilities, sync task ordering, tracing and OpenAPI model deduplication"
requires-python = ">=3.10"
keywords = ["gitops", "kubernetes", "manifests", "sync", "yaml", "tracing", "kubeconfig"]
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
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["gitopskit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
