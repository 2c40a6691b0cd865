"""
Interfaces - REST API and command-line entry points.
"""
