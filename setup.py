from setuptools import setup, find_packages

setup(
    name='ghupgrade',
    version='0.1.0',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    python_requires='>=3.10',
    install_requires=[
        'requests',
        'urllib3',
        'PyYAML',
        'platformdirs',
        'python-dotenv',
        'rich',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-mock',
        ],
    },
    entry_points={
        'console_scripts': [
            'ghupgrade=ghupgrade.cli:main',
        ],
    },
)
