from setuptools import setup, find_packages

setup(
    name="kpi-narrator",
    version="1.0.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pandas>=2.0",
        "numpy>=1.24",
        "python-dateutil>=2.8",
        "PyYAML>=6.0",
        "APScheduler>=3.10,<4",
        "watchdog>=3.0",
        "psutil>=5.9"
    ],
    extras_require={
        "llm": [
            "openai>=1.0",
            "google-generativeai>=0.5",
        ],
        "excel": ["openpyxl>=3.1"],
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "kpi-narrator=kpi_narrator.cli:main",
        ],
    },
    python_requires=">=3.10",
    description="Monthly KPI history to LLM-written dashboard narratives",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ]
)
