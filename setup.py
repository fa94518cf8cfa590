# setup.py
from setuptools import setup, find_packages

setup(
    name='treesync',
    version='0.1.0',
    description='Keeps a server-built widget tree in sync with a webview presentation layer.',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',

    # Finds the `treesync` and `treesync_cli` packages
    packages=find_packages(include=['treesync', 'treesync.*', 'treesync_cli', 'treesync_cli.*']),

    # The browser runtime ships inside the package.
    include_package_data=True,
    package_data={
        'treesync': ['web/*.html', 'web/*.js', 'web/*.css'],
    },

    install_requires=[
        'PySide6',
        'typer',
        'PyYAML',
    ],
    extras_require={
        'test': ['pytest'],
    },

    # Creates an executable script named `treesync` that calls the `app`
    # object inside `treesync_cli.main`.
    entry_points={
        'console_scripts': [
            'treesync = treesync_cli.main:app',
        ],
    },

    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: OS Independent',
        'Intended Audience :: Developers',
        'Topic :: Software Development :: User Interfaces',
    ],
    python_requires='>=3.10',
)
