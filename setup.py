"""Install the account security package."""

from setuptools import setup, find_packages

setup(
    name='account-security',
    version='0.1.0',
    packages=find_packages(exclude=['*tests*']),
    python_requires='>=3.8',
    install_requires=[
        "bcrypt",
        "celery",
        "email-validator",
        "jinja2",
        "pyjwt>=2",
        "python-dateutil",
        "python-json-logger",
        "pytz",
        "redis>=4.1",
        "retry",
        "sqlalchemy>=1.4",
        "werkzeug",
        "wtforms>=3",
    ],
    extras_require={
        'test': [
            "fakeredis",
            "pytest",
        ],
    },
    zip_safe=False
)
