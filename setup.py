from setuptools import setup, find_packages

setup(
    name="izhikevich-stream",
    version="0.3.0",
    description="Izhikevich spiking network with host-parallel and accelerator "
                "backends, streamed to a live history view",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["run_simulation"],
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "scipy",
        "matplotlib",
        "torch",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
)
