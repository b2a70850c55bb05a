"""
Setup script for the MoveMD workout metrics engine
Run: pip install -e .[test]
"""

from setuptools import setup

PY_MODULES = [
    'alerts',
    'biometrics',
    'constants',
    'db',
    'exceptions',
    'hr_zones',
    'metrics',
    'models',
    'notifications',
    'orchestrator',
    'session_recorder',
    'time_formatter',
]

setup(
    name='movemd-metrics',
    version='1.0.0',
    description='Workout-session metrics engine: heart-rate zones, intensity and progress pulse scoring',
    py_modules=PY_MODULES,
    packages=['core'],
    python_requires='>=3.9',
    install_requires=[
        'numpy',
        'pandas',
    ],
    extras_require={
        'test': ['pytest'],
    },
)
