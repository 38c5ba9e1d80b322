from setuptools import setup, find_packages

setup(
    name="archsim",
    version="0.1.0",
    description="Tick-based traffic and failure simulation of infrastructure designs",
    author="adamfilli",
    packages=find_packages(include=["archsim", "archsim.*"]),
    install_requires=[
        "matplotlib",
        "pandas",
    ],
    extras_require={
        "test": ["pytest"],
    },
    include_package_data=True,
    python_requires=">=3.11",
)
