from setuptools import find_packages, setup

setup(
    name="prom_eagle",
    version="0.1.0",
    description="Exports power usage to Prometheus from a Rainforest Eagle power monitor",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "httpx>=0.25.0",
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "pyyaml>=6.0",
        "prometheus-client>=0.19.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "prom-eagle=prom_eagle.entrypoints.daemon:main",
        ],
    },
    python_requires=">=3.9",
)
