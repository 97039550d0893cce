from setuptools import setup, find_packages

from pathlib import Path
this_directory = Path(__file__).parent
long_description = (this_directory / "kohonen3d/README.md").read_text(encoding="utf-8")

setup(
    name='kohonen3d',
    version='0.2.0', # Corresponds to __version__ in __init__.py
    description='A PyTorch-based Self-Organizing Map (SOM) library over a 3D neuron grid, with neuron labeling and CSV export.',
    long_description=long_description,
    long_description_content_type='text/markdown',
    packages=find_packages(where=".", include=['kohonen3d', 'kohonen3d.*']),
    package_data={'kohonen3d': ['README.md']},
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Operating System :: OS Independent',
        'Topic :: Scientific/Engineering :: Artificial Intelligence',
        'Topic :: Software Development :: Libraries :: Python Modules',
    ],
    python_requires='>=3.10', # PEP 604 unions in signatures
    install_requires=[
        'torch>=2.0',
        'tqdm',
        'PyYAML',
        'pandas',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'kohonen3d=kohonen3d.cli:main',
        ],
    },
    keywords='som, self-organizing map, kohonen map, 3d grid, pytorch, machine learning',
)
