"""Search opportunity & content recommendation engine"""

__version__ = "1.0.0"
