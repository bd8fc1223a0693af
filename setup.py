"""
setup.py: Setup script for the item name OCR lookup system
"""

from setuptools import setup, find_packages

setup(
    name="itemocr",
    version="0.1.0",
    description="OCR preprocessing and fuzzy catalog lookup for game item names",
    packages=find_packages(exclude=["*.tests", "*.tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "opencv-python>=4.8.0",
        "Pillow>=10.0.0",
        "pytesseract>=0.3.10",
        "numpy>=1.24.0",
        "sqlalchemy>=2.0.0",
        "click>=8.1.7",
        "python-dotenv>=1.0.0",
        "python-Levenshtein>=0.21.1",
        "tqdm>=4.66.0",
    ],
    extras_require={
        'opencc': ["opencc>=1.1.6"],
        'test': ["pytest>=7.4.0"],
    },
    entry_points={
        'console_scripts': [
            'itemocr=itemocr.cli.main:cli',
        ],
    },
)
