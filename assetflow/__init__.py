"""
assetflow

Asset build pipeline for server-rendered web applications:
- Script bundling and minification
- SCSS compilation, prefixing and minification
- Image optimisation and static file copying
- Watch mode, live reload and an application supervisor
"""

__version__ = "1.0.0"
