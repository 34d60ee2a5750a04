import re

import setuptools

with open("pyflowgateway/__init__.py", "r") as fh:
    __version__ = '%s.%s.%s' % tuple(
        re.search(r"version_tuple = \((\d+), (\d+), (\d+)\)", fh.read()).groups())

with open("README.md", "r") as fh:
    long_description = fh.read()

setuptools.setup(
    name="pyflowgateway",
    version=__version__,
    description="Python module to monitor and configure a Modbus RTU-TCP flow counter gateway",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(exclude=["*.tests", "*.tests.*"]),
    install_requires=[
        'requests',
        'pydantic>=2.0',
        'pydantic-settings>=2.0',
        'python-dotenv',
        'python-dateutil',
    ],
    extras_require={
        'test': ['pytest', 'pytest-asyncio'],
    },
    entry_points={
        'console_scripts': ['pyflowgateway=pyflowgateway.__main__:main'],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)
