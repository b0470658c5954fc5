"""
Setup script for mcd_rcd_engine package.
"""

from setuptools import setup, find_packages

setup(
    name="mcd-rcd-pricing",
    version="1.0.0",
    description="Moteur de pricing e-commerce : multiplicateur marketing (MCD) et remise fidélité (RCD)",
    author="PricEye Team",
    packages=find_packages(),
    install_requires=[
        "supabase>=2.0.0",
        "pandas>=2.0.0",
        "python-dotenv>=1.0.0",
        "pytz>=2023.3",
        "python-dateutil>=2.8.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    python_requires=">=3.9",
)
