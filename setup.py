from __future__ import annotations

from pathlib import Path

from setuptools import find_packages, setup


ROOT = Path(__file__).parent


if __name__ == "__main__":
    setup(
        name="surfgrid",
        version="0.1.0",
        description="Binned surface arrays with neighbour registration for tracking-detector layers",
        package_dir={"": "src"},
        packages=find_packages(where=str(ROOT / "src")),
        python_requires=">=3.11",
        install_requires=[
            "numpy>=1.24",
            "scipy>=1.10",
        ],
        extras_require={
            "test": ["pytest>=7"],
        },
    )
