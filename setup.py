"""A setuptools based setup module.

See:
https://packaging.python.org/en/latest/distributing.html
https://github.com/pypa/sampleproject
"""

from os import path
from setuptools import setup

# To use a consistent encoding
from codecs import open

here = path.abspath(path.dirname(__file__))

# Get the long description from the README file
with open(path.join(here, "README.rst"), encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="circuitpython-apds9960",
    use_scm_version={"fallback_version": "0.1.0"},
    setup_requires=["setuptools_scm"],
    description="A CircuitPython driver for the ambient light sensing of the Broadcom "
    "APDS-9960 implementing the Adafruit_BusDevice library.",
    long_description=long_description,
    long_description_content_type="text/x-rst",
    # The project's main homepage.
    url="https://github.com/2bndy5/CircuitPython_APDS9960",
    # Author details
    author="Brendan Doherty",
    author_email="2bndy5@gmail.com",
    install_requires=["Adafruit-Blinka", "adafruit-circuitpython-busdevice"],
    extras_require={"test": ["pytest"]},
    # Choose your license
    license="MIT",
    # See https://pypi.python.org/pypi?%3Aaction=list_classifiers
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries",
        "Topic :: System :: Hardware",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
    ],
    # What does your project relate to?
    keywords="adafruit blinka circuitpython APDS9960 APDS-9960 "
    "ambient light color sensor driver Broadcom",
    py_modules=["circuitpython_apds9960"],
    # Extra links for the sidebar on pypi
    project_urls={
        "Documentation": "https://circuitpython-apds9960.readthedocs.io",
    },
    download_url="https://github.com/2bndy5/CircuitPython_APDS9960/releases",
)
