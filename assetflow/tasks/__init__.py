"""
Asset build tasks.

Each module exposes one action taking a BuildContext and returning a
PipelineResult. ``assetflow.tasks.catalog`` registers them by name.
"""
