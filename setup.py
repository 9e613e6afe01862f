from setuptools import setup, find_packages


with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="sitesurvey",
    version="0.1.0",
    description="Site-survey infrastructure model, bill-of-materials engine and diagram projection.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"sitesurvey.schemas": ["*.json"]},
    python_requires=">=3.10",
    install_requires=["networkx", "pyyaml", "jsonschema"],
    extras_require={"test": ["pytest"]},
    tests_require=["pytest"],
    entry_points={"console_scripts": ["sitesurvey=sitesurvey.cli:main"]},
)
