from setuptools import setup

setup(
    name='syntropystack',
    version='0.1.0',
    py_modules=['syntropystack'],
    packages=['syntropy', 'syntropy.resources'],
    install_requires=[
        'Click',
        'python-hcl2',
        'PyYAML',
        'requests'
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points='''
        [console_scripts]
        syntropystack=syntropystack:cli
    ''',
)
