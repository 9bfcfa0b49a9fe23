"""
Setup file.
"""

from setuptools import find_packages, setup

URL = "https://github.com/nativebuild/nativebuild"
KEYWORDS = "native clang llvm linker compiler toolchain build scala-native"

INSTALL_REQUIRES = [
    "psutil",
    "requests",
    "tqdm",
]

EXTRAS_REQUIRE = {
    "test": [
        "pytest",
    ],
}


if __name__ == "__main__":
    setup(
        name="nativebuild",
        version="0.1.0",
        description="Native executable builds from linked IR and a classpath",
        keywords=KEYWORDS,
        url=URL,
        python_requires=">=3.10",
        package_dir={"": "src"},
        packages=find_packages(where="src"),
        install_requires=INSTALL_REQUIRES,
        extras_require=EXTRAS_REQUIRE,
        entry_points={
            "console_scripts": [
                "nativebuild=nativebuild.cli:main",
            ],
        },
        include_package_data=True)
