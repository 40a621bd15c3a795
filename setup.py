# setup.py
from setuptools import setup, find_packages

setup(
    name="lvt-ledger",
    version="0.1.0",
    packages=find_packages(include=["lvt", "lvt.*"]),
    python_requires=">=3.10",
    install_requires=[
        "msgpack",             # record encoding
        "plyvel",              # LevelDB record store
        "PyNaCl",              # ed25519 identities
        "psutil",              # monitoring
        "prometheus_client",   # metrics
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "lvt-ledger=lvt.cli:main",
        ],
    },
)
