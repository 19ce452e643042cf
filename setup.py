"""
Setup script for pdf-raster-service project.

Allows development installation with `pip install -e .`
"""

from setuptools import setup, find_packages

setup(
    name="pdf-raster-service",
    version="0.1.0",
    packages=find_packages(include=["raster_service", "raster_service.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn>=0.27",
        "pydantic>=2.5",
        "pydantic-settings>=2.1",
        "python-multipart>=0.0.9",
        "PyMuPDF>=1.24",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "httpx>=0.26",
        ],
    },
    entry_points={
        "console_scripts": [
            "raster-service=raster_service.__main__:main",
        ],
    },
)
