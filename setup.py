import os

from setuptools import setup

MODULES = [
    "config",
    "cpu",
    "disasm",
    "headless_run",
    "loader",
    "machine",
    "main",
    "memory",
    "opcodes",
    "ppu",
    "utils",
]

# Optional compiled build of the hot path: TINYNES_CYTHON=1 pip install .[speedups]
ext_modules = []
if os.environ.get("TINYNES_CYTHON") == "1":
    from Cython.Build import cythonize

    ext_modules = cythonize(
        ["cpu.py", "memory.py"],
        compiler_directives={
            "boundscheck": False,
            "wraparound": False,
            "cdivision": True,
            "language_level": 3,
        },
    )

setup(
    name="tinynes",
    version="0.1.0",
    description="MOS 6502 interpreter with a PPU register window and tile renderer",
    python_requires=">=3.8",
    py_modules=MODULES,
    ext_modules=ext_modules,
    install_requires=[
        "Pillow>=9.1",
        "PySDL2>=0.9.11",
    ],
    extras_require={
        "speedups": ["Cython>=3.0"],
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "tinynes-run=headless_run:main",
            "tinynes=main:main",
        ],
    },
)
