from setuptools import find_packages, setup

setup(
    name="ci-bootstrap",
    version="0.1.0",
    packages=find_packages(
        include=[
            "ciboot_common",
            "ciboot_common.*",
            "ciboot_client",
            "ciboot_client.*",
            "ciboot_tunnel",
            "ciboot_tunnel.*",
            "ciboot_controller",
            "ciboot_controller.*",
            "ciboot_cli",
            "ciboot_cli.*",
        ]
    ),
    install_requires=[
        "requests>=2.31.0",
        "click>=8.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-xdist>=3.3.0",
            "fastapi>=0.104.0",
            "uvicorn>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ciboot=ciboot_cli.cli:cli",
        ],
    },
    python_requires=">=3.10",
)
