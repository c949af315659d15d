"""
Development services: file watching, live reload and the app supervisor.
"""
