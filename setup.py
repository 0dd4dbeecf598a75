"""
SAML Service

SAML 2.0 Service Provider for the learning platform: SP-initiated
login against a campus IdP, assertion validation, and session token
issuance.
"""

from setuptools import setup, find_packages

setup(
    name="saml-service",
    version="1.0.0",
    description="SAML 2.0 Service Provider for campus single sign-on",
    author="FaultMaven",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.11",
    install_requires=[
        # Web framework
        "fastapi>=0.104.0",
        "uvicorn[standard]>=0.24.0",
        "python-multipart>=0.0.6",

        # Configuration
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",

        # SAML XML processing and XML-DSig verification
        "lxml>=4.9.0",
        "cryptography>=41.0.0",
        "signxml>=3.2.0",

        # Session tokens
        "python-jose[cryptography]>=3.3.0",

        # Request-ID store (GETDEL needs redis-py 4.2+)
        "redis>=4.2.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "httpx>=0.25.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.11",
        "License :: Other/Proprietary License",
    ],
)
