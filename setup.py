from setuptools import setup, find_packages

with open("README.md", "r") as fh:
    long_description = fh.read()

with open("requirements.txt", "r") as fh:
    reqs = fh.read()

setup(
    name="dicom-sorter",
    version="1.0.0",
    description="Rename and file received DICOM studies into an archive by their header metadata.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    install_requires=reqs,
    package_dir={"": "src"},
    packages=find_packages("src"),
    extras_require={
        'test': ['pytest'],
    },
    entry_points={'console_scripts': ['dicom-sorter = dicomsorter.cli.__main__:cli',]},
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX",
        "Topic :: Scientific/Engineering :: Medical Science Apps.",
        "Development Status :: 5 - Production/Stable"
    ],
    python_requires='>=3.10',
)
