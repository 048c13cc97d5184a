from setuptools import setup, find_packages

setup(
    name="quiz-drill",
    version="0.1.0",
    description="Multiple-choice self-quizzing trainer with mistake replay and mastery tracking",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "quiz-drill=quiz_drill.tutor:main",
        ],
    },
)
