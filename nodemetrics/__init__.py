"""Host metric collectors that read Linux procfs and sysfs and render Prometheus text."""

__version__ = "0.1.0"