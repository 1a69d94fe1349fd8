from setuptools import setup

setup(
    name="gitpending",
    version="1.0.0",
    py_modules=["gitpending"],
    entry_points={
        'console_scripts': [
            'gitpending=gitpending:main',
        ],
    },
    extras_require={
        'test': ['pytest'],
    },
    author="Owen Ainslie",
    description="List Git repositories with uncommitted, untracked, unstaged or unpushed work.",
    python_requires='>=3.7',
)
