"""WorkOrbit board core: hierarchical missions, projects, stories and tasks."""

__version__ = "0.1.0"
