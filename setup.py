"""Setup.py file
"""
import setuptools

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setuptools.setup(
    name="FB-QC",
    version="0.1.0",
    description="Count and quality-check Feature Barcode reads per cell for single cell experiments",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    entry_points={"console_scripts": ["FB-QC = fb_qc.__main__:main"]},
    classifiers=(
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ),
    install_requires=[
        "polars>=0.20.0",
        "rapidfuzz>=3.0.0",
        "Levenshtein>=0.21.0",
        "multiprocess>=0.70.14",
    ],
    extras_require={
        "test": [
            "pytest>=6.0.0",
            "pytest-dependency>=0.5.1",
        ],
    },
    python_requires=">=3.10",
)
