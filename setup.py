from setuptools import setup, find_packages

setup(
    name="lambdaship",
    version="0.1.0",
    packages=find_packages(include=["lambdaship", "lambdaship.*"]),
    py_modules=["cli"],
    install_requires=[
        "boto3",
        "botocore",
    ],
    extras_require={
        "test": [
            "pytest",
            "moto>=5",
        ],
    },
    entry_points={
        'console_scripts': [
            'lambdaship=cli:main',
        ],
    },
    description="Deploy Go handlers as AWS Lambda functions",
    python_requires='>=3.8',
)
