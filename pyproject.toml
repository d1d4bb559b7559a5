[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mediadev"
version = "0.1.0"
description = "Media device building blocks: a driver registry with life-cycle states, raw frame decoders, synthetic test sources and a VNC framebuffer client."
requires-python = ">=3.10"
keywords = ["video", "capture", "camera", "yuv", "mjpeg", "z16", "vnc", "rfb", "media"]
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
    "Topic :: Multimedia :: Video :: Capture",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "pillow",
    "pycryptodome",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["mediadev"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
