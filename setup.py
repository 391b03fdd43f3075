from setuptools import setup, find_packages

setup(
    name='cascadeforest',
    version='1.0',
    packages=find_packages(exclude=['tests', 'experiments']),
    py_modules=[
        'cart',
        'cascaded_forest',
        'classifier_runtime',
        'dsv',
        'evaluation',
        'gini',
        'knn',
        'lnsmote',
        'mining_config',
        'mining_errors',
        'partitions',
        'random_forest',
        'smote',
    ],
    python_requires='>=3.10',
    install_requires=[
        'numpy',
        'pandas',
    ],
    extras_require={
        'test': ['pytest>=7'],
    },
    description='Random forest, cascaded random forest, SMOTE and LNSMOTE for imbalanced classification',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
)
