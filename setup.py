import os

from setuptools import find_packages, setup


# Read README for long description
def read_readme():
    readme_path = os.path.join(os.path.dirname(__file__), "README.md")
    if os.path.exists(readme_path):
        with open(readme_path, "r", encoding="utf-8") as f:
            return f.read()
    return "Tail tracking and swim bout analysis for larval fish recordings"


setup(
    name="fish-kinematics",
    version="1.0.0",
    description="Tail tracking and swim bout analysis for larval fish recordings",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    # Package configuration
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "numpy",
        "opencv-python",
        "pandas",
        "scipy",
        "matplotlib",
        "tqdm",
    ],
    extras_require={
        "test": ["pytest"],
    },
    # Console scripts
    entry_points={
        "console_scripts": [
            "fish-kinematics=fish_kinematics.app.launcher:main",
        ],
    },
    # Metadata
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Scientific/Engineering :: Image Recognition",
    ],
    python_requires=">=3.11",
    keywords="zebrafish, tail tracking, swim bouts, behavioral analysis, opencv",
)
