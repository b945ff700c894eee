#!/usr/bin/env python
from setuptools import setup
import os


def get_version():
    curdir = os.path.dirname(__file__)
    filename = os.path.join(curdir, 'src', 'psd2scene', 'version.py')
    with open(filename, 'rb') as fp:
        return fp.read().decode('utf8').split('=')[1].strip(" \n'")


def readme():
    with open('README.rst') as f:
        return f.read()


setup(
    name='psd2scene',
    version=get_version(),
    description='Convert PSD layer trees to editable design scenes',
    long_description=readme(),
    classifiers=[
        'Development Status :: 3 - Alpha',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Topic :: Multimedia :: Graphics',
        'Topic :: Multimedia :: Graphics :: Graphics Conversion',
    ],
    keywords='photoshop psd scene design',
    license='MIT License',
    package_dir={'': 'src'},
    packages=[
        'psd2scene',
        'psd2scene.core',
    ],
    python_requires='>=3.10',
    install_requires=[
        'pillow',
        'numpy',
        'psd-tools>=1.10',
        'fonttools',
    ],
    extras_require={
        'test': [
            'pytest'],
    },
    include_package_data=True,
    entry_points={
        'console_scripts': ['psd2scene=psd2scene.__main__:main']
    },
    tests_require=['pytest'],
    )
