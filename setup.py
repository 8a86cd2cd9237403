from setuptools import setup, find_packages

setup(
    name="diffsplit",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml",
        "textual",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "diffsplit=diffsplit.cli:main",
        ],
    },
    author="Uday Kanth",
    description="Split a unified diff into two complementary patches by line selection.",
)
