import io
import os
import re

from setuptools import find_packages
from setuptools import setup


def read(filename):
    filename = os.path.join(os.path.dirname(__file__), filename)
    text_type = type(u"")
    with io.open(filename, mode="r", encoding="utf-8") as fd:
        return re.sub(text_type(r":[a-z]+:`~?(.*?)`"), text_type(r"``\1``"), fd.read())


setup(
    version="0.1.0",
    name="framed_visa",
    url="https://github.com/charlesbaynham/framed_visa",
    license="None",
    author="Charles Baynham",
    author_email="charles.baynham@npl.co.uk",
    description=(
        "Framed, thread-safe I/O sessions with SCPI instruments over VISA or "
        "raw TCP sockets"
    ),
    long_description=read("README.rst"),
    packages=find_packages(exclude=("tests",)),
    install_requires=["pyvisa", "pyserial", "pyvisa-py>=0.5.1"],
    extras_require={
        "dev": ["pre-commit", "tox", "sphinx", "sphinx_rtd_theme"],
        "test": ["pytest"],
    },
    classifiers=[
        "Development Status :: 2 - Pre-Alpha",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3.7",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
    ],
)
