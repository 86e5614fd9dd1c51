"""Building blocks for a small web framework: routing, params, i18n, interceptors, jobs, signing and mail."""

__version__ = "0.1.0"