import setuptools
from pathlib import Path
##############################################

def _read_version() -> str:
    about: dict = {}
    version_path = Path(__file__).parent / "degreport" / "_version.py"
    exec(version_path.read_text(encoding="utf-8"), about)
    return about["__version__"]

with open("README.md", "r") as fh:
    long_description = fh.read()

with open("requirements.txt", "r") as fh:
    install_requires = fh.read()

setuptools.setup(
     name='degreport',
     version=_read_version(),
     description="Volcano plots and significant gene lists from differential expression tables",
     long_description_content_type="text/markdown",
     long_description=long_description,
     install_requires = install_requires,
     extras_require={"test": ["pytest"]},
     packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
     python_requires=">=3.10",
     classifiers=[
         "Programming Language :: Python :: 3",
         "License :: OSI Approved :: GNU Affero General Public License v3",
         "Operating System :: OS Independent",
     ],
 )
