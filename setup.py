from setuptools import setup, find_packages

def parse_requirements(requirements):
    with open(requirements) as f:
        return [l.strip('\n') for l in f if l.strip('\n') and not l.startswith('#')]

requirements = parse_requirements("requirements.txt")

setup(
    name='vanilla_smoke',
    version='0.1.0',
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0", "respx>=0.20"],
    },
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.9",
    entry_points={
        "console_scripts": [
            "vanilla-smoke=vanilla_smoke.cli:cli",
        ],
    }
)
