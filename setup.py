from setuptools import find_packages, setup

setup(
    name="hybridfg",
    version="0.0",
    description="Hybrid discrete-continuous factors in Jax",
    license="BSD",
    packages=find_packages("src"),
    package_dir={"": "src"},
    package_data={"hybridfg": ["py.typed"]},
    python_requires=">=3.11",
    install_requires=[
        "frozendict",
        "jax>=0.4.25",
        "jaxlib",
        "jax_dataclasses>=1.6.0",
        "loguru",
        "numpy",
    ],
    extras_require={
        "testing": [
            "pytest",
            "pytest-cov",
        ],
        "type-checking": [
            "mypy",
        ],
    },
)
