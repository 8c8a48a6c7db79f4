"""SecureProctor - remote assessment integrity monitoring service"""

__version__ = "1.0.0"
