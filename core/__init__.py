"""Core module - settings and observability shared by every form component.

The selection, reconciliation and allocation packages depend on this module;
it depends on none of them.
"""

__version__ = "1.0.0"
