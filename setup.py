from setuptools import setup, find_packages

setup(
    name='melonkit',
    version='0.1.0',
    description='MelonLoader installer and version cleanup tool',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    python_requires='>=3.10',
    install_requires=[
        'requests',
        'PyYAML',
        'urllib3',
        'platformdirs',
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
            'melonkit=melonkit.cli:main',
        ],
    },
)
