import os.path
import pathlib
from os import path

from setuptools import setup

from zefiro.version import VERSION

this_directory = path.abspath(path.dirname(__file__))
with open(path.join(this_directory, "README.md"), encoding="utf-8") as f:
    long_description = f.read()
with open(os.path.join(pathlib.Path(__file__).parent, "requirements.txt")) as f:
    install_requires = f.read().splitlines()
with open(os.path.join(pathlib.Path(__file__).parent, "test-requirements.txt")) as f:
    tests_require = f.read().splitlines()

setup(
    name="zefiro",
    version=VERSION,
    packages=[
        "zefiro",
        "zefiro.config",
        "zefiro.core",
        "zefiro.cwl",
        "zefiro.cwl.expression",
        "zefiro.job",
    ],
    package_data={
        "zefiro.config": ["schemas/v1.0/*.json"],
        "zefiro.job": ["schemas/*.json"],
    },
    include_package_data=True,
    description="CWL v1.2 tool loader, expression evaluator and command line resolver",
    long_description=long_description,
    long_description_content_type="text/markdown",
    install_requires=install_requires,
    extras_require={
        "test": tests_require,
    },
    tests_require=tests_require,
    python_requires=">=3.10, <4",
    zip_safe=True,
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "Operating System :: POSIX",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3.10",
        "Topic :: Scientific/Engineering",
        "Topic :: System :: Distributed Computing",
    ],
)
